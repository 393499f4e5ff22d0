"""Base model configuration for all Pydantic models."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CoolmonBaseModel(BaseModel):
    """Base model with common configuration.

    Conventions:
    - Python attributes are snake_case, the wire format is camelCase
    - Timestamps are ISO 8601 with timezone (UTC)
    - Both attribute names and aliases are accepted on input
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
