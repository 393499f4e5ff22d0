"""Tests for Redis event routing."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from app.services.emitter import EventEmitter
from app.services.event_router import EventRouter
from hub_helpers import events

from shared.models import HubEvent, HubEventName, Subject
from shared.redis_client import RedisClient, RedisDB

CHANNEL = "coolmon:events"


@pytest.fixture
def emitter(registry):
    return EventEmitter(registry)


@pytest.fixture
def router(emitter):
    return EventRouter(MagicMock(), emitter, CHANNEL)


class TestRouting:
    async def test_device_event_reaches_subscribers(self, registry, router, connect):
        connection = connect()
        registry.subscribe(Subject.device(42), connection.id)

        await router._handle_message(
            CHANNEL,
            json.dumps({"event": "device-data-updated", "deviceId": 42, "data": {"tempColdStorage": 3.1}}),
        )

        (message,) = events(connection)
        assert message["event"] == "device-data-updated"
        assert message["data"] == {"deviceId": 42, "sensorData": {"tempColdStorage": 3.1}}
        assert router.events_routed == 1

    @pytest.mark.parametrize("name,key", [
        (HubEventName.DEVICE_STATUS_CHANGED, "status"),
        (HubEventName.NEW_ALERT, "alert"),
        (HubEventName.GPIO_STATE_UPDATED, "state"),
    ])
    def test_device_events_dispatch(self, registry, router, connect, name, key):
        connection = connect()
        registry.subscribe(Subject.device(3), connection.id)

        router.route_event(HubEvent(event=name, device_id=3, data={"x": 1}))

        (message,) = events(connection)
        assert message["event"] == name.value
        assert message["data"][key] == {"x": 1}

    def test_user_notification(self, router, connect):
        connection = connect(user_id=7)

        delivered = router.route_event(
            HubEvent(event=HubEventName.USER_NOTIFICATION, user_id=7, message="Report ready", type="success")
        )

        assert delivered == 1
        assert events(connection)[0]["data"]["type"] == "success"

    def test_system_notification_and_activity(self, router, connect):
        connection = connect()

        router.route_event(HubEvent(event=HubEventName.SYSTEM_NOTIFICATION, message="Restarting"))
        router.route_event(HubEvent(event=HubEventName.ACTIVITY_LOGGED, data={"action": "Login"}))

        assert [m["event"] for m in events(connection)] == ["system-notification", "activity-logged"]

    async def test_published_event_round_trip(self, registry, router, connect):
        connection = connect()
        registry.subscribe(Subject.all_devices(), connection.id)

        async def deliver(channel, payload):
            await router._handle_message(channel, payload)
            return 1

        pubsub_client = MagicMock()
        pubsub_client.publish = AsyncMock(side_effect=deliver)
        publisher = RedisClient()
        publisher._clients[RedisDB.PUBSUB] = pubsub_client

        receivers = await publisher.publish_event(
            CHANNEL,
            HubEvent(event=HubEventName.DEVICE_STATUS_CHANGED, device_id=42, data="WARNING"),
        )

        assert receivers == 1
        channel, payload = pubsub_client.publish.await_args.args
        assert channel == CHANNEL
        assert json.loads(payload)["deviceId"] == 42
        (message,) = events(connection)
        assert message["event"] == "device-status-changed"
        assert message["channel"] == "devices:all"
        assert message["data"]["deviceId"] == 42
        assert router.events_routed == 1

    async def test_publish_requires_connect(self):
        with pytest.raises(RuntimeError):
            await RedisClient().publish_event(CHANNEL, HubEvent(event=HubEventName.SYSTEM_NOTIFICATION))


class TestBadMessages:
    async def test_invalid_json_is_dropped(self, router):
        await router._handle_message(CHANNEL, "{not json")

        assert router.events_dropped == 1
        assert router.events_routed == 0

    async def test_unknown_event_is_dropped(self, router):
        await router._handle_message(CHANNEL, json.dumps({"event": "cluster-registered"}))

        assert router.events_dropped == 1

    async def test_missing_device_id_is_dropped(self, router):
        await router._handle_message(CHANNEL, json.dumps({"event": "new-alert", "data": {}}))

        assert router.events_dropped == 1
        assert router.events_routed == 0


class TestLifecycle:
    async def test_stop_closes_pubsub(self, router):
        pubsub = MagicMock()
        pubsub.unsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        router._pubsub = pubsub

        await router.stop()

        pubsub.unsubscribe.assert_awaited_once()
        pubsub.aclose.assert_awaited_once()
