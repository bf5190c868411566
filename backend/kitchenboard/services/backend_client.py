"""Order backend client - orders and push token endpoints."""
import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from ..config import settings
from ..errors import BackendRejected, PollFailure, StatusUpdateFailed
from ..schemas.order import Order, OrderStatus
from ..schemas.push import PushToken

logger = logging.getLogger(__name__)


class OrderBackendClient:
    """HTTP client for the order backend REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def list_orders(self) -> List[Order]:
        """Fetch the current order list.

        Orders that fail validation (e.g. a status this board does not know)
        are skipped so one odd record cannot blank the board.

        Raises:
            PollFailure: network error, non-2xx response or malformed body
        """
        try:
            async with self._client() as client:
                response = await client.get("/orders")
        except httpx.HTTPError as e:
            raise PollFailure(f"Order fetch failed: {e}") from e

        if response.status_code != 200:
            raise PollFailure(f"Order fetch failed: {response.status_code}")

        try:
            raw_orders = response.json()
        except ValueError as e:
            raise PollFailure(f"Order list is not JSON: {e}") from e
        if not isinstance(raw_orders, list):
            raise PollFailure("Order list is not a list")

        orders = []
        for raw in raw_orders:
            try:
                orders.append(Order.model_validate(raw))
            except ValidationError as e:
                order_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning(f"Skipping order {order_id}: {e.error_count()} validation errors")
        return orders

    async def update_order_status(self, order_id: int, status: OrderStatus) -> Optional[Order]:
        """PATCH an order's status.

        Raises:
            StatusUpdateFailed: the backend did not apply the change
        """
        try:
            async with self._client() as client:
                response = await client.patch(
                    f"/orders/{order_id}",
                    json={"status": status.value},
                )
        except httpx.HTTPError as e:
            raise StatusUpdateFailed(order_id, status.value, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            raise StatusUpdateFailed(order_id, status.value, f"{response.status_code} - {response.text}")

        logger.info(f"Order #{order_id} -> {status.value}")
        try:
            return Order.model_validate(response.json())
        except (ValueError, ValidationError):
            return None

    async def register_token(self, push_token: PushToken, identity: str, is_admin: bool) -> dict:
        """Register a token with the admin or customer registry.

        Raises:
            BackendRejected: non-2xx response or transport failure
        """
        endpoint = "/register-admin-token" if is_admin else "/register-push-token"
        try:
            async with self._client() as client:
                response = await client.post(
                    endpoint,
                    json={
                        "token": push_token.token,
                        "identity": identity,
                        "platform": push_token.platform.value,
                    },
                )
        except httpx.HTTPError as e:
            raise BackendRejected(f"Token registration failed: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response) or "Failed to register push token"
            raise BackendRejected(message, status_code=response.status_code)

        logger.info(f"Token registered at {endpoint}: {push_token.token[:16]}...")
        try:
            return response.json()
        except ValueError:
            return {"success": True}

    async def send_test_notification(self, kind: str = "admin") -> dict:
        """Ask the backend to push a test notification to the given registry.

        Raises:
            BackendRejected: non-2xx response, unsuccessful body or transport failure
        """
        try:
            async with self._client() as client:
                response = await client.post("/test-notification", json={"type": kind})
        except httpx.HTTPError as e:
            raise BackendRejected(f"Test notification failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400 or not (isinstance(body, dict) and body.get("success")):
            message = _error_message(response) or "Failed to send test notification"
            raise BackendRejected(message, status_code=response.status_code)

        logger.info(f"Test notification sent to {kind} registry")
        return body

    async def unregister_token(self, token: str) -> bool:
        """Best-effort unregister. Raises on transport failure, False on non-2xx."""
        async with self._client() as client:
            response = await client.post("/unregister-push-token", json={"token": token})
        if response.status_code >= 400:
            logger.warning(f"Token unregister returned {response.status_code}")
            return False
        return True


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        return body.get("message")
    return None
