"""End-to-end tests for the /ws endpoint."""

import pytest
from starlette.websockets import WebSocketDisconnect

from shared.models import Subject


def _connect(client, token):
    return client.websocket_connect("/ws", headers={"Authorization": f"Bearer {token}"})


class TestHandshake:
    def test_connected_message(self, client, make_token):
        with _connect(client, make_token(7)) as ws:
            message = ws.receive_json()

        assert message["type"] == "connected"
        assert message["userId"] == 7
        assert message["connectionId"]
        assert "serverTime" in message

    def test_expired_token_is_rejected(self, app, client, make_token):
        before = app.state.registry.count_connections()

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with _connect(client, make_token(7, expires_in=-60)) as ws:
                ws.receive_json()

        assert exc_info.value.code == 1008
        assert app.state.registry.count_connections() == before

    def test_missing_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()

        assert exc_info.value.code == 1008

    def test_inactive_user_is_rejected(self, app, client, make_token):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with _connect(client, make_token(9)) as ws:
                ws.receive_json()

        assert exc_info.value.code == 1008
        assert app.state.registry.count_connections() == 0

    def test_subprotocol_token(self, client, make_token):
        with client.websocket_connect("/ws", subprotocols=["bearer", make_token(7)]) as ws:
            assert ws.accepted_subprotocol == "bearer"
            assert ws.receive_json()["type"] == "connected"

    def test_query_param_token(self, client, make_token):
        with client.websocket_connect(f"/ws?access_token={make_token(8)}") as ws:
            assert ws.receive_json()["userId"] == 8


class TestSubscriptionProtocol:
    def test_join_device_and_receive_events(self, app, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_json({"type": "join-device", "deviceId": 42})
            assert ws.receive_json() == {"type": "subscribed", "channel": "device:42"}

            app.state.emitter.emit_device_data_update(42, {"tempColdStorage": 2.5})

            message = ws.receive_json()
            assert message["event"] == "device-data-updated"
            assert message["data"]["sensorData"] == {"tempColdStorage": 2.5}

    def test_malformed_id_gets_no_reply(self, app, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_json({"type": "join-device", "deviceId": "not-a-number"})
            ws.send_json({"type": "ping", "timestamp": 1})

            # The ping reply is the next message; the bad join produced nothing
            reply = ws.receive_json()
            assert reply["type"] == "pong"
            assert reply["timestamp"] == 1
            assert app.state.registry.get_stats().device_subscriptions == []

    def test_join_other_user_is_ignored(self, app, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_json({"type": "join-user", "userId": 8})
            ws.send_json({"type": "join-user", "userId": 7})

            assert ws.receive_json() == {"type": "subscribed", "channel": "user:7"}
            assert app.state.registry.subscribers(Subject.user(8)) == []

    def test_all_devices_channel(self, app, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_json({"type": "join-all-devices"})
            assert ws.receive_json() == {"type": "subscribed", "channel": "devices:all"}

            app.state.emitter.emit_device_status_change(5, "ERROR")

            message = ws.receive_json()
            assert message["channel"] == "devices:all"
            assert message["data"] == {"deviceId": 5, "status": "ERROR"}

            ws.send_json({"type": "leave-all-devices"})
            assert ws.receive_json() == {"type": "unsubscribed", "channel": "devices:all"}

    def test_unknown_message_type(self, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe"})

            reply = ws.receive_json()
            assert reply["type"] == "error"
            assert reply["code"] == "UNKNOWN_MESSAGE_TYPE"

    def test_invalid_json(self, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_text("{not json")

            reply = ws.receive_json()
            assert reply["code"] == "INVALID_MESSAGE"

    def test_binary_frame_keeps_connection_open(self, app, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_bytes(b"\x00\x01binary")

            reply = ws.receive_json()
            assert reply["code"] == "INVALID_MESSAGE"

            ws.send_json({"type": "join-device", "deviceId": 42})
            assert ws.receive_json() == {"type": "subscribed", "channel": "device:42"}
            assert app.state.registry.count_connections() == 1

    def test_two_tabs_receive_user_notification(self, app, client, make_token):
        with _connect(client, make_token(7)) as tab_one, _connect(client, make_token(7)) as tab_two:
            tab_one.receive_json()
            tab_two.receive_json()

            delivered = app.state.emitter.emit_user_notification(7, "msg", "info")

            assert delivered == 2
            for tab in (tab_one, tab_two):
                message = tab.receive_json()
                assert message["event"] == "user-notification"
                assert message["data"]["message"] == "msg"


class TestDisconnect:
    def test_disconnect_cleans_up_subscriptions(self, app, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            ws.send_json({"type": "join-device", "deviceId": 1})
            ws.receive_json()
            ws.send_json({"type": "join-device", "deviceId": 2})
            ws.receive_json()
            assert app.state.registry.count_connections() == 1

        registry = app.state.registry
        assert registry.count_connections() == 0
        assert not registry.is_user_connected(7)
        assert app.state.emitter.emit_device_data_update(1, {}) == 0
        assert app.state.emitter.emit_device_data_update(2, {}) == 0

    def test_forced_close_reaches_client(self, app, client, make_token):
        with _connect(client, make_token(7)) as ws:
            ws.receive_json()
            connection = app.state.registry.connections_for_user(7)[0]

            connection.close(code=1001, reason="Connection timeout")

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == 1001
