"""Pytest configuration and shared fixtures."""

import json
from typing import Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from kitchenboard.database import build_engine, build_session_factory, init_db, close_db
from kitchenboard.services.alerter import AlertSound
from kitchenboard.services.backend_client import OrderBackendClient
from kitchenboard.services.channel import (
    DeviceRegistration,
    NativePushTransport,
    PermissionState,
    RegistrationError,
    WebPushTransport,
    WorkerRegistration,
)
from kitchenboard.services.events import EventEmitter, NativePushEvent
from kitchenboard.services.local_store import LocalStore
from kitchenboard.services.token_registry import TokenRegistry

BACKEND_URL = "http://backend.test/api"


def make_order(order_id: int, status: str = "pending", **extra) -> dict:
    order = {
        "id": order_id,
        "status": status,
        "date_created": "2026-10-18T12:00:00",
        "meta_data": [],
        "line_items": [{"name": "Butter Chicken", "quantity": 1}],
        "billing": {"first_name": "Sam", "last_name": "Lee", "phone": "555-0100"},
        "total": "18.50",
    }
    order.update(extra)
    return order


class FakeOrderApi:
    """In-memory order backend served through httpx.MockTransport."""

    def __init__(self):
        self.orders: List[dict] = []
        self.fail_orders = False
        self.status_errors: Dict[int, int] = {}
        self.token_status = 200
        self.test_status = 200
        self.unregister_error: Optional[Exception] = None
        self.requests: List[httpx.Request] = []

    def set_orders(self, *ids: int, status: str = "pending"):
        self.orders = [make_order(i, status) for i in ids]

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/api{path}"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")

        if request.method == "GET" and path == "/orders":
            if self.fail_orders:
                raise httpx.ConnectError("backend unreachable", request=request)
            return httpx.Response(200, json=self.orders)

        if request.method == "PATCH" and path.startswith("/orders/"):
            order_id = int(path.rsplit("/", 1)[1])
            if order_id in self.status_errors:
                return httpx.Response(self.status_errors[order_id], json={"message": "rejected"})
            for order in self.orders:
                if order["id"] == order_id:
                    order["status"] = json.loads(request.content)["status"]
                    return httpx.Response(200, json=order)
            return httpx.Response(404, json={"message": "unknown order"})

        if request.method == "POST" and path in ("/register-push-token", "/register-admin-token"):
            if self.token_status >= 400:
                return httpx.Response(self.token_status, json={"message": "invalid token"})
            return httpx.Response(200, json={"success": True})

        if request.method == "POST" and path == "/test-notification":
            if self.test_status >= 400:
                return httpx.Response(self.test_status, json={"success": False, "message": "no admin tokens"})
            return httpx.Response(200, json={"success": True, "sent": 1})

        if request.method == "POST" and path == "/unregister-push-token":
            if self.unregister_error is not None:
                raise self.unregister_error
            return httpx.Response(200, json={"success": True})

        return httpx.Response(404)

    def client(self) -> OrderBackendClient:
        return OrderBackendClient(
            base_url=BACKEND_URL,
            timeout=5,
            transport=httpx.MockTransport(self.handler),
        )


class FakeNativeTransport(NativePushTransport):
    """Scriptable OS push transport."""

    def __init__(
        self,
        permission: PermissionState = PermissionState.GRANTED,
        device_token: Optional[str] = "apns-device-token-0001",
        registration_error: Optional[str] = None,
        exchange_result: Optional[str] = "fcm-delivery-token-0001",
        exchange_error: Optional[Exception] = None,
    ):
        self.events = EventEmitter(name="fake-native")
        self.permission = permission
        self.device_token = device_token
        self.registration_error = registration_error
        self.exchange_result = exchange_result
        self.exchange_error = exchange_error
        self.register_calls = 0
        self.exchange_calls = 0

    async def check_permissions(self) -> PermissionState:
        return self.permission

    async def request_permissions(self) -> PermissionState:
        return self.permission

    async def register(self) -> None:
        self.register_calls += 1
        # Unrelated events may arrive before the outcome
        await self.events.emit(NativePushEvent.PUSH_RECEIVED, {"title": "early"})
        if self.registration_error:
            await self.events.emit(
                NativePushEvent.REGISTRATION_ERROR, RegistrationError(self.registration_error)
            )
        elif self.device_token:
            await self.events.emit(
                NativePushEvent.REGISTRATION, DeviceRegistration(self.device_token)
            )

    async def exchange_token(self) -> str:
        self.exchange_calls += 1
        if self.exchange_error is not None:
            raise self.exchange_error
        return self.exchange_result


class FakeWebTransport(WebPushTransport):
    """Scriptable browser push transport."""

    def __init__(
        self,
        supported: bool = True,
        permission: PermissionState = PermissionState.GRANTED,
        token: Optional[str] = "web-delivery-token-0001",
        worker_error: Optional[Exception] = None,
        token_error: Optional[Exception] = None,
    ):
        self.supported = supported
        self.permission = permission
        self.token = token
        self.worker_error = worker_error
        self.token_error = token_error
        self.worker_paths: List[str] = []
        self.token_requests: List[tuple] = []

    def is_supported(self) -> bool:
        return self.supported

    async def permission_status(self) -> PermissionState:
        return self.permission

    async def request_permission(self) -> PermissionState:
        return self.permission

    async def register_worker(self, script_path: str) -> WorkerRegistration:
        self.worker_paths.append(script_path)
        if self.worker_error is not None:
            raise self.worker_error
        return WorkerRegistration(scope="/", script_url=script_path)

    async def get_token(self, vapid_key: str, registration: WorkerRegistration) -> str:
        self.token_requests.append((vapid_key, registration.script_url))
        if self.token_error is not None:
            raise self.token_error
        return self.token


class RecordingSound(AlertSound):
    """Alert sound that counts plays, or fails like a blocked autoplay."""

    def __init__(self, fail: bool = False):
        self.plays = 0
        self.fail = fail

    @property
    def is_playing(self) -> bool:
        return self.plays > 0

    async def play(self):
        if self.fail:
            raise RuntimeError("autoplay blocked")
        self.plays += 1


class RecordingSocket:
    """Stand-in display connection that keeps every message it is sent."""

    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_text(self, text):
        self.sent.append(json.loads(text))


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'local.db'}")
    await init_db(engine)
    yield build_session_factory(engine)
    await close_db(engine)


@pytest.fixture
def store(session_factory):
    return LocalStore(session_factory)


@pytest.fixture
def registry(store):
    return TokenRegistry(store)


@pytest.fixture
def order_api():
    return FakeOrderApi()


@pytest.fixture
def backend(order_api):
    return order_api.client()
