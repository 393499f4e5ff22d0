"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get(
    "/health",
    summary="Health check",
    description="Basic health check endpoint.",
)
async def health(request: Request):
    """Basic health check."""
    return {"status": "healthy", "service": request.app.title}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if service is ready to receive traffic.",
)
async def ready(request: Request):
    """Readiness check.

    Verifies the registry is up and, when event routing is enabled, that
    Redis answers.
    """
    state = request.app.state
    checks = {"registry": getattr(state, "registry", None) is not None}

    redis = getattr(state, "redis", None)
    if redis is not None:
        try:
            health_result = await redis.health_check()
            checks["redis"] = health_result.get("status") == "healthy"
        except Exception:
            checks["redis"] = False

    all_ready = all(checks.values())

    response = {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
    }
    if checks["registry"]:
        response["connections"] = state.registry.get_stats().to_wire()
    return response
