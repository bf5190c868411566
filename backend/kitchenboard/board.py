"""Kitchen board composition root.

Builds one instance of every component, wires their events together and owns
their lifecycle. Nothing here is a module-level singleton, so tests can build
as many isolated boards as they like.
"""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from .config import settings
from .errors import StatusUpdateFailed
from .schemas.order import (
    BoardColumns,
    BoardOrder,
    BoardResponse,
    Order,
    OrderStatus,
    StatusTransitionIntent,
)
from .schemas.push import PushPayload
from .services.alerter import AlertCoordinator, AlertEvent, AlertSound, BroadcastAlertSound, NewOrdersAlert
from .services.background_handler import BackgroundDeliveryHandler
from .services.backend_client import OrderBackendClient
from .services.channel import ChannelEvent, NotificationChannel
from .services.events import Subscription
from .services.gesture import GestureInterpreter
from .services.local_store import LocalStore
from .services.poller import ConnectionHealth, OrderFeedPoller, PollEvent, PollResult
from .services.state_machine import OrderStatusMachine, next_status, quick_actions
from .services.token_registry import TokenRegistry
from .services.token_sync import BackendTokenSync
from .services.websocket_manager import ConnectionManager

logger = logging.getLogger(__name__)


class KitchenBoard:
    """All kitchen board components for one display service."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        backend: Optional[OrderBackendClient] = None,
        sound: Optional[AlertSound] = None,
        poll_interval_seconds: Optional[int] = None,
        channel: Optional[NotificationChannel] = None,
    ):
        self.backend = backend or OrderBackendClient()
        self.connections = ConnectionManager()

        self.store = LocalStore(session_factory)
        self.registry = TokenRegistry(self.store)
        self.token_sync = BackendTokenSync(self.registry, self.backend)

        self.poller = OrderFeedPoller(self.backend, poll_interval_seconds)
        self.sound = sound or BroadcastAlertSound(self.connections)
        self.alerter = AlertCoordinator(self.poller, self.sound)
        self.machine = OrderStatusMachine(self.backend, refresh=self.poller.refresh)
        self.gesture = GestureInterpreter()
        self.background = BackgroundDeliveryHandler()
        self.channel = channel

        self._subscriptions: List[Subscription] = []

    def wire(self):
        """Connect poller, alerter and push channel events to the display broadcast."""
        if self._subscriptions:
            return
        self.alerter.attach()
        self._subscriptions = [
            self.poller.events.add_listener(PollEvent.HEALTH, self._on_health),
            self.poller.events.add_listener(PollEvent.RESULT, self._on_poll_result),
            self.alerter.events.add_listener(AlertEvent.NEW_ORDERS, self._on_alert),
        ]
        if self.channel is not None:
            self._subscriptions.append(
                self.channel.add_listener(ChannelEvent.RECEIVED, self._on_foreground_push)
            )

    async def start(self):
        """Recover local push state, then start polling."""
        self.wire()
        await self.registry.load()
        self.poller.start()

    async def stop(self):
        self.poller.stop()
        for subscription in self._subscriptions:
            await subscription.remove()
        self._subscriptions = []
        await self.alerter.detach()
        if self.channel is not None:
            await self.channel.cleanup()

    async def _on_health(self, health: ConnectionHealth):
        await self.connections.broadcast_health(health.value)

    async def _on_poll_result(self, result: PollResult):
        if result.applied and result.error is None:
            await self.connections.broadcast_orders_changed(result.snapshot.ids, result.tick)

    async def _on_alert(self, alert: NewOrdersAlert):
        await self.connections.broadcast_new_orders(
            alert.order_ids,
            alert.source.value,
            alert.badge_count,
            alert.title,
            alert.body,
        )

    async def _on_foreground_push(self, notification):
        if isinstance(notification, PushPayload):
            payload = notification
        else:
            # Native transports hand over title/body/data flat
            payload = PushPayload(
                notification={"title": notification.get("title"), "body": notification.get("body")},
                data=notification.get("data") or {},
            )
        await self.alerter.on_foreground_push(payload)

    def find_order(self, order_id: int) -> Optional[Order]:
        for order in self.poller.orders:
            if order.id == order_id:
                return order
        return None

    def view(self) -> BoardResponse:
        """Orders grouped into kitchen columns, with what each card offers."""
        columns = BoardColumns()
        by_status = {
            OrderStatus.PENDING: columns.pending,
            OrderStatus.PROCESSING: columns.processing,
            OrderStatus.ON_HOLD: columns.on_hold,
            OrderStatus.COMPLETED: columns.completed,
        }
        for order in self.poller.orders:
            column = by_status.get(order.status)
            if column is None:
                continue
            if order.status == OrderStatus.COMPLETED and len(column) >= settings.completed_column_limit:
                continue
            column.append(BoardOrder(
                order=order,
                next_status=next_status(order.status),
                actions=quick_actions(order.status),
            ))

        last_success = self.poller.last_success_at
        return BoardResponse(
            columns=columns,
            health=self.poller.health.value,
            degraded=self.poller.health == ConnectionHealth.ERROR,
            last_success_at=last_success.isoformat() if last_success else None,
            muted=self.alerter.muted,
            auto_refresh=self.poller.auto_refresh,
            commit_threshold=self.gesture.commit_threshold,
            feedback_max_offset=self.gesture.feedback_max,
        )

    async def apply(self, intent: StatusTransitionIntent) -> Optional[Order]:
        """Commit an intent and tell the displays how it went.

        Raises:
            StatusUpdateFailed: re-raised after the failure is broadcast
        """
        try:
            updated = await self.machine.commit(intent)
        except StatusUpdateFailed as e:
            logger.warning(str(e))
            await self.connections.broadcast_status_update(
                intent.order_id,
                intent.target_status.value,
                intent.origin.value,
                success=False,
                detail=e.reason,
            )
            raise
        await self.connections.broadcast_status_update(
            intent.order_id,
            intent.target_status.value,
            intent.origin.value,
            success=True,
        )
        return updated
