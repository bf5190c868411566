"""Alert coordinator - one audible + visual alert per newly arrived order."""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from ..config import settings
from ..schemas.order import OrderStatus
from ..schemas.push import PushPayload
from .events import EventEmitter, Subscription
from .poller import OrderFeedPoller, PollEvent, PollResult
from .websocket_manager import ConnectionManager

logger = logging.getLogger(__name__)


class AlertSource(str, Enum):
    POLL = "poll"
    PUSH = "push"


class AlertEvent(str, Enum):
    NEW_ORDERS = "new_orders"


@dataclass(frozen=True)
class NewOrdersAlert:
    """A raised alert. Emitted whether or not the sound is muted."""
    order_ids: Tuple[int, ...]
    source: AlertSource
    badge_count: int
    sound_played: bool
    title: Optional[str] = None
    body: Optional[str] = None


class AlertSound(ABC):
    """Alert sound playback. play() while already playing restarts from the top."""

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        ...

    @abstractmethod
    async def play(self) -> None:
        ...


class BroadcastAlertSound(AlertSound):
    """Tells connected displays to play the alert sound.

    Playback is tracked for the clip's duration; a play() inside that window
    is sent as a restart, so displays seek to zero instead of overlapping.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        duration_seconds: Optional[float] = None,
        src: Optional[str] = None,
        volume: Optional[float] = None,
    ):
        self._manager = manager
        self.duration_seconds = duration_seconds or settings.alert_sound_seconds
        self.src = src or settings.alert_sound_path
        self.volume = settings.alert_volume if volume is None else volume
        self._started_at: Optional[float] = None

    @property
    def is_playing(self) -> bool:
        if self._started_at is None:
            return False
        return time.monotonic() - self._started_at < self.duration_seconds

    async def play(self) -> None:
        action = "restart" if self.is_playing else "play"
        self._started_at = time.monotonic()
        await self._manager.broadcast({
            "type": "alert_sound",
            "action": action,
            "src": self.src,
            "volume": self.volume,
        })


class AlertCoordinator:
    """Dedupes poll and foreground-push signals into single alerts.

    An order counts as accounted for once it is in the poller's snapshot or
    has been alerted through a push. Either path skips accounted orders.
    Muting only silences the sound.

    A push-only id that never shows up in a poll is forgotten after
    `push_dedup_ticks` successful polls.
    """

    def __init__(self, poller: OrderFeedPoller, sound: AlertSound, dedup_ticks: Optional[int] = None):
        self._poller = poller
        self._sound = sound
        self.muted = False
        self.alert_count = 0
        self.dedup_ticks = dedup_ticks or settings.push_dedup_ticks
        # Alerted by push, not yet seen in a snapshot: order id -> polls applied at push time
        self._push_only: Dict[int, int] = {}
        self._polls_applied = 0
        self._subscription: Optional[Subscription] = None
        self.events = EventEmitter(name="alerts")

    def attach(self) -> Subscription:
        """Start listening to the poller."""
        if self._subscription is None:
            self._subscription = self._poller.events.add_listener(PollEvent.RESULT, self.on_poll_result)
        return self._subscription

    async def detach(self):
        if self._subscription is not None:
            await self._subscription.remove()
            self._subscription = None

    def set_muted(self, muted: bool) -> bool:
        self.muted = muted
        logger.info(f"Alert sound {'muted' if muted else 'unmuted'}")
        return self.muted

    def toggle_mute(self) -> bool:
        return self.set_muted(not self.muted)

    def _badge_count(self) -> int:
        return sum(1 for order in self._poller.orders if order.status == OrderStatus.PENDING)

    def is_accounted(self, order_id: int) -> bool:
        return order_id in self._push_only or order_id in self._poller.snapshot.ids

    async def on_poll_result(self, result: PollResult) -> Optional[NewOrdersAlert]:
        if not result.applied or result.error is not None:
            return None

        self._polls_applied += 1
        fresh = set(result.new_ids) - self._push_only.keys()
        self._push_only = {
            order_id: pushed_at
            for order_id, pushed_at in self._push_only.items()
            if order_id not in result.snapshot.ids
            and self._polls_applied - pushed_at < self.dedup_ticks
        }

        if not result.has_new_orders or not fresh:
            return None
        return await self._raise(fresh, AlertSource.POLL)

    async def on_foreground_push(self, payload: PushPayload) -> Optional[NewOrdersAlert]:
        """Alert for a push received while the display is open."""
        order_id = None
        if payload.order_id:
            try:
                order_id = int(payload.order_id)
            except ValueError:
                logger.warning(f"Push carried a non-numeric orderId {payload.order_id!r}")

        if order_id is None:
            return await self._raise((), AlertSource.PUSH, payload.title, payload.body)

        if self.is_accounted(order_id):
            logger.debug(f"Push for order #{order_id} already accounted for")
            return None
        self._push_only[order_id] = self._polls_applied
        return await self._raise((order_id,), AlertSource.PUSH, payload.title, payload.body)

    async def _raise(
        self,
        order_ids: Iterable[int],
        source: AlertSource,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> NewOrdersAlert:
        sound_played = False
        if not self.muted:
            try:
                await self._sound.play()
                sound_played = True
            except Exception as e:
                logger.error(f"Alert sound failed: {e}")

        alert = NewOrdersAlert(
            order_ids=tuple(sorted(order_ids)),
            source=source,
            badge_count=self._badge_count(),
            sound_played=sound_played,
            title=title,
            body=body,
        )
        self.alert_count += 1
        logger.info(f"New order alert ({source.value}): {list(alert.order_ids)}")
        await self.events.emit(AlertEvent.NEW_ORDERS, alert)
        return alert
