"""API tests against an isolated board (no lifespan, no scheduler)."""

import json

import httpx
import pytest
import pytest_asyncio

from kitchenboard.board import KitchenBoard
from kitchenboard.main import create_app
from kitchenboard.schemas.push import Platform
from kitchenboard.services.channel import (
    NativeNotificationChannel,
    PermissionState,
    WebNotificationChannel,
)
from kitchenboard.services.events import NativePushEvent

from conftest import FakeNativeTransport, FakeWebTransport, RecordingSocket, RecordingSound


@pytest_asyncio.fixture
async def board(session_factory, backend, order_api):
    board = KitchenBoard(session_factory, backend=backend, sound=RecordingSound())
    board.wire()
    order_api.set_orders(1, 2)
    await board.poller.refresh()
    yield board
    await board.stop()


@pytest_asyncio.fixture
async def client(board):
    app = create_app(board)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
        yield c


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_poll_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "poll_health": "connected"}


class TestBoardView:

    @pytest.mark.asyncio
    async def test_columns_and_offered_actions(self, client, order_api, board):
        order_api.orders.append(
            {**order_api.orders[0], "id": 3, "status": "processing"}
        )
        await board.poller.refresh()

        response = await client.get("/api/board")

        assert response.status_code == 200
        body = response.json()
        assert [c["order"]["id"] for c in body["columns"]["pending"]] == [1, 2]
        assert [c["order"]["id"] for c in body["columns"]["processing"]] == [3]
        assert body["columns"]["pending"][0]["next_status"] == "processing"
        assert [a["label"] for a in body["columns"]["pending"][0]["actions"]] == ["Start", "Hold"]
        assert body["health"] == "connected"
        assert body["degraded"] is False
        assert body["commit_threshold"] == 100

    @pytest.mark.asyncio
    async def test_degraded_board_keeps_last_orders(self, client, order_api):
        order_api.fail_orders = True

        refresh = await client.post("/api/board/refresh")
        board_view = (await client.get("/api/board")).json()

        assert refresh.json()["health"] == "error"
        assert refresh.json()["error"]
        assert board_view["degraded"] is True
        assert len(board_view["columns"]["pending"]) == 2

    @pytest.mark.asyncio
    async def test_refresh_reports_new_orders(self, client, order_api, board):
        order_api.set_orders(1, 2, 3)

        response = await client.post("/api/board/refresh")

        assert response.json()["has_new_orders"] is True
        assert response.json()["new_order_ids"] == [3]
        assert board.alerter.alert_count == 1
        assert board.sound.plays == 1

    @pytest.mark.asyncio
    async def test_auto_refresh_toggle(self, client, board):
        response = await client.post("/api/board/auto-refresh", json={"enabled": False})
        assert response.json() == {"auto_refresh": False}
        assert (await client.get("/api/board")).json()["auto_refresh"] is False


class TestSwipe:

    @pytest.mark.asyncio
    async def test_drag_reports_intensity_only(self, client, order_api):
        response = await client.post("/api/orders/1/drag", json={"offset": 75})

        assert response.json()["intensity"] == pytest.approx(0.5)
        assert response.json()["committed"] is False
        assert order_api.requests_to("/orders/1") == []

    @pytest.mark.asyncio
    async def test_short_release_snaps_back(self, client, order_api):
        response = await client.post("/api/orders/1/drag", json={"offset": 99, "released": True})

        assert response.json()["committed"] is False
        assert order_api.requests_to("/orders/1") == []

    @pytest.mark.asyncio
    async def test_release_past_threshold_commits_and_refreshes(self, client, order_api, board):
        socket = RecordingSocket()
        await board.connections.connect(socket)

        response = await client.post("/api/orders/1/drag", json={"offset": 140, "released": True})

        assert response.status_code == 200
        assert response.json()["committed"] is True
        assert response.json()["target_status"] == "processing"
        assert json.loads(order_api.requests_to("/orders/1")[0].content) == {"status": "processing"}
        assert board.find_order(1).status.value == "processing"
        assert "status_updated" in [m["type"] for m in socket.sent]

    @pytest.mark.asyncio
    async def test_leftward_release_does_nothing(self, client, order_api):
        response = await client.post("/api/orders/1/drag", json={"offset": -200, "released": True})

        assert response.json()["offset"] == 0
        assert response.json()["committed"] is False

    @pytest.mark.asyncio
    async def test_unknown_order_is_404(self, client):
        response = await client.post("/api/orders/99/drag", json={"offset": 10})
        assert response.status_code == 404


class TestQuickActions:

    @pytest.mark.asyncio
    async def test_hold_from_pending(self, client, board):
        response = await client.post("/api/orders/2/status", json={"status": "on-hold"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "order_id": 2,
            "status": "on-hold",
            "origin": "action",
        }
        assert board.find_order(2).status.value == "on-hold"

    @pytest.mark.asyncio
    async def test_unoffered_transition_is_409(self, client, order_api):
        response = await client.post("/api/orders/1/status", json={"status": "completed"})

        assert response.status_code == 409
        assert order_api.requests_to("/orders/1") == []

    @pytest.mark.asyncio
    async def test_backend_failure_is_502_and_broadcast(self, client, order_api, board):
        socket = RecordingSocket()
        await board.connections.connect(socket)
        order_api.status_errors[1] = 500

        response = await client.post("/api/orders/1/status", json={"status": "processing"})

        assert response.status_code == 502
        assert board.find_order(1).status.value == "pending"
        failures = [m for m in socket.sent if m["type"] == "status_update_failed"]
        assert failures[0]["order_id"] == 1


class TestAlertsApi:

    @pytest.mark.asyncio
    async def test_mute_set_and_toggle(self, client):
        assert (await client.post("/api/alerts/mute", json={"muted": True})).json()["muted"] is True
        assert (await client.post("/api/alerts/mute", json={})).json()["muted"] is False
        assert (await client.get("/api/alerts")).json()["alert_count"] == 0


class TestPushApi:

    @pytest.mark.asyncio
    async def test_register_without_token_is_409(self, client, order_api):
        response = await client.post("/api/push/register", json={"identity": "kitchen@example.com"})

        assert response.status_code == 409
        assert order_api.requests_to("/register-push-token") == []

    @pytest.mark.asyncio
    async def test_submit_then_register_admin(self, client, order_api, board):
        await client.post("/api/push/token", json={"token": "web-tok-1", "platform": "web"})

        response = await client.post(
            "/api/push/register",
            json={"identity": "kitchen@example.com", "is_admin": True},
        )

        assert response.status_code == 200
        assert len(order_api.requests_to("/register-admin-token")) == 1
        status = (await client.get("/api/push/status")).json()
        assert status["has_token"] is True
        assert status["platform"] == "web"
        assert status["admin_registered_at"] is not None

    @pytest.mark.asyncio
    async def test_backend_rejection_is_502(self, client, order_api, board):
        await board.registry.store_token("tok-1", Platform.ANDROID)
        order_api.token_status = 500

        response = await client.post("/api/push/register", json={"identity": "guest-1"})

        assert response.status_code == 502
        assert board.registry.current.token == "tok-1"

    @pytest.mark.asyncio
    async def test_unregister_clears_even_when_backend_down(self, client, order_api, board):
        await board.registry.store_token("tok-1", Platform.IOS)
        order_api.unregister_error = httpx.ConnectError("backend unreachable")

        response = await client.post("/api/push/unregister")

        assert response.status_code == 200
        assert (await client.get("/api/push/status")).json()["has_token"] is False

    @pytest.mark.asyncio
    async def test_foreground_push_dedup(self, client, order_api):
        payload = {"notification": {"title": "New order #3"}, "data": {"orderId": 3}}

        first = await client.post("/api/push/foreground", json=payload)
        order_api.set_orders(1, 2, 3)
        refresh = await client.post("/api/board/refresh")
        second = await client.post("/api/push/foreground", json=payload)

        assert first.json() == {"alerted": True, "order_ids": [3]}
        assert refresh.json()["has_new_orders"] is True
        assert second.json() == {"alerted": False, "order_ids": []}
        assert (await client.get("/api/alerts")).json()["alert_count"] == 1

    @pytest.mark.asyncio
    async def test_send_test_notification(self, client, order_api, board):
        await board.registry.store_token("web-tok-1", Platform.WEB)

        response = await client.post("/api/push/test")

        assert response.status_code == 200
        assert json.loads(order_api.requests_to("/test-notification")[0].content) == {"type": "admin"}

    @pytest.mark.asyncio
    async def test_test_notification_without_token_is_409(self, client, order_api):
        response = await client.post("/api/push/test")

        assert response.status_code == 409
        assert order_api.requests_to("/test-notification") == []

    @pytest.mark.asyncio
    async def test_test_notification_rejected_is_502(self, client, order_api, board):
        await board.registry.store_token("web-tok-1", Platform.WEB)
        order_api.test_status = 500

        response = await client.post("/api/push/test")

        assert response.status_code == 502
        assert "no admin tokens" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_status_without_channel(self, client, board):
        before = (await client.get("/api/push/status")).json()
        await client.post("/api/push/token", json={"token": "web-tok-1", "platform": "web"})
        after = (await client.get("/api/push/status")).json()

        assert (before["supported"], before["permission"]) == (False, "unsupported")
        assert (after["supported"], after["permission"]) == (True, "enabled")

    @pytest.mark.asyncio
    async def test_refresh_without_channel_is_503(self, client, order_api):
        response = await client.post("/api/push/refresh", json={"identity": "kitchen@example.com"})

        assert response.status_code == 503
        assert order_api.requests_to("/register-admin-token") == []


class TestBackgroundApi:

    @pytest.mark.asyncio
    async def test_render_background_push(self, client):
        response = await client.post(
            "/api/push/background/render",
            json={"notification": {"title": "New order #7"}, "data": {"orderId": 7, "requireInteraction": True}},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["title"] == "New order #7"
        assert body["body"] == "You have a new notification"
        assert body["data"] == {"orderId": "7", "requireInteraction": "true"}
        assert body["require_interaction"] is True

    @pytest.mark.asyncio
    async def test_click_focuses_open_app_window(self, client):
        response = await client.post(
            "/api/push/background/click",
            json={
                "data": {"orderId": "7"},
                "open_windows": ["https://elsewhere.example.com/", "http://localhost:8000/kitchen"],
            },
        )

        assert response.json() == {
            "destination": "/order-status/7",
            "focus": "http://localhost:8000/kitchen",
            "open": None,
        }

    @pytest.mark.asyncio
    async def test_click_without_app_window_opens_one(self, client):
        response = await client.post(
            "/api/push/background/click",
            json={"data": {"url": "/orders"}, "open_windows": []},
        )

        assert response.json() == {"destination": "/orders", "focus": None, "open": "/orders"}


class TestChannelInitialize:

    @pytest_asyncio.fixture
    async def native_board(self, session_factory, backend, order_api):
        transport = FakeNativeTransport()
        board = KitchenBoard(session_factory, backend=backend, sound=RecordingSound())
        board.channel = NativeNotificationChannel(
            board.registry, transport, Platform.ANDROID, exchange_delay=0, registration_timeout=1
        )
        board.wire()
        order_api.set_orders(1, 2)
        await board.poller.refresh()
        yield board, transport
        await board.stop()

    @pytest.mark.asyncio
    async def test_no_channel_is_503(self, client):
        response = await client.post("/api/push/initialize")
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_initialize_stores_token(self, native_board):
        board, transport = native_board
        app = create_app(board)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
            response = await c.post("/api/push/initialize")
            status = (await c.get("/api/push/status")).json()

        assert response.status_code == 200
        assert board.registry.current.token == "fcm-delivery-token-0001"
        assert status["platform"] == "android"
        assert status["is_native"] is True

    @pytest.mark.asyncio
    async def test_permission_denied_is_403(self, native_board):
        board, transport = native_board
        transport.permission = PermissionState.DENIED
        app = create_app(board)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
            response = await c.post("/api/push/initialize")

        assert response.status_code == 403
        assert transport.register_calls == 0

    @pytest.mark.asyncio
    async def test_registration_error_is_502(self, native_board):
        board, transport = native_board
        transport.registration_error = "no play services"
        app = create_app(board)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
            response = await c.post("/api/push/initialize")

        assert response.status_code == 502
        assert "no play services" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_native_foreground_push_reaches_alerts(self, native_board):
        board, transport = native_board
        await board.channel.initialize()
        alerts_before = board.alerter.alert_count

        await transport.events.emit(
            NativePushEvent.PUSH_RECEIVED,
            {"title": "New order #5", "body": "Pickup 7pm", "data": {"orderId": "5"}},
        )
        await transport.events.emit(
            NativePushEvent.PUSH_RECEIVED,
            {"title": "Order #1 updated", "data": {"orderId": "1"}},
        )

        # Order 5 is new; order 1 is already on the board
        assert board.alerter.alert_count == alerts_before + 1
        assert board.alerter.is_accounted(5)

    @pytest.mark.asyncio
    async def test_refresh_reregisters_with_admin_registry(self, native_board, order_api):
        board, transport = native_board
        app = create_app(board)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
            response = await c.post("/api/push/refresh", json={"identity": "kitchen@example.com"})
            status = (await c.get("/api/push/status")).json()

        assert response.status_code == 200
        assert transport.register_calls == 1
        sent = json.loads(order_api.requests_to("/register-admin-token")[0].content)
        assert sent == {
            "token": "fcm-delivery-token-0001",
            "identity": "kitchen@example.com",
            "platform": "android",
        }
        assert status["admin_registered_at"] is not None

    @pytest.mark.asyncio
    async def test_rejected_refresh_leaves_marker_unset(self, native_board, order_api):
        board, transport = native_board
        order_api.token_status = 500
        app = create_app(board)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
            response = await c.post("/api/push/refresh", json={"identity": "kitchen@example.com"})

        assert response.status_code == 502
        assert board.registry.admin_registered_at is None

    @pytest.mark.asyncio
    async def test_status_follows_permission_and_token(self, native_board):
        board, transport = native_board
        app = create_app(board)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
            before = (await c.get("/api/push/status")).json()
            await c.post("/api/push/initialize")
            after = (await c.get("/api/push/status")).json()
            transport.permission = PermissionState.DENIED
            denied = (await c.get("/api/push/status")).json()

        assert (before["supported"], before["permission"]) == (True, "prompt")
        assert after["permission"] == "enabled"
        assert denied["permission"] == "denied"

    @pytest.mark.asyncio
    async def test_unsupported_browser_status(self, board):
        board.channel = WebNotificationChannel(board.registry, FakeWebTransport(supported=False))
        app = create_app(board)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://display.test") as c:
            status = (await c.get("/api/push/status")).json()

        assert status["supported"] is False
        assert status["permission"] == "unsupported"
