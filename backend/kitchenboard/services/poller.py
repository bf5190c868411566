"""Order feed poller - periodic order fetch with new-arrival detection.

Each tick:
- health goes to CHECKING before the fetch starts
- the order list is fetched and its ids diffed against the previous snapshot
- on success the snapshot is swapped, then health goes to CONNECTED
- on failure the previous snapshot is kept and health goes to ERROR

The first snapshot is a baseline: it never reports new orders. Failures never
stop the schedule; they only show up in the health signal.

Scheduled ticks never overlap (max_instances=1). A forced refresh can run
beside a scheduled tick, so every tick carries a sequence number and a result
that lands after a newer tick was already applied is discarded.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from ..errors import PollFailure
from ..schemas.order import Order
from .backend_client import OrderBackendClient
from .events import EventEmitter

logger = logging.getLogger(__name__)

POLL_JOB_ID = "poll_orders"


class ConnectionHealth(str, Enum):
    """Outcome of the most recent poll."""
    CONNECTED = "connected"
    CHECKING = "checking"
    ERROR = "error"


class PollEvent(str, Enum):
    HEALTH = "health"
    RESULT = "result"


@dataclass(frozen=True)
class OrderSnapshot:
    """Order ids seen at one tick. Replaced whole, never mutated."""
    tick: int = 0
    ids: FrozenSet[int] = frozenset()
    captured_at: Optional[datetime] = None


@dataclass(frozen=True)
class PollResult:
    """What one tick produced."""
    tick: int
    health: ConnectionHealth
    snapshot: OrderSnapshot
    new_ids: FrozenSet[int] = frozenset()
    has_new_orders: bool = False
    orders: Tuple[Order, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    applied: bool = True


class OrderFeedPoller:
    """Owns the order-id snapshot and the connection-health signal."""

    def __init__(self, backend: OrderBackendClient, interval_seconds: Optional[int] = None):
        self._backend = backend
        self.interval_seconds = interval_seconds or settings.poll_interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self.auto_refresh = True

        self._snapshot = OrderSnapshot()
        self._orders: Tuple[Order, ...] = ()
        self._health = ConnectionHealth.CHECKING
        self._tick_seq = 0
        self._applied_seq = 0
        self.last_success_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

        self.events = EventEmitter(name="poller")

    @property
    def snapshot(self) -> OrderSnapshot:
        return self._snapshot

    @property
    def orders(self) -> Tuple[Order, ...]:
        return self._orders

    @property
    def health(self) -> ConnectionHealth:
        return self._health

    def start(self):
        """Start polling. The first tick runs immediately unless auto refresh is off."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._scheduled_tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=POLL_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.interval_seconds,
            next_run_time=datetime.now(),
        )
        self.scheduler.start()
        self._running = True
        if not self.auto_refresh:
            self.scheduler.pause_job(POLL_JOB_ID)
        logger.info(f"Order poller started (interval={self.interval_seconds}s)")

    def stop(self):
        """Stop polling and drop the timer."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Order poller stopped")

    def set_auto_refresh(self, enabled: bool):
        """Pause or resume scheduled ticks; the snapshot is kept either way."""
        self.auto_refresh = enabled
        if not self.scheduler or not self._running:
            return
        if enabled:
            self.scheduler.resume_job(POLL_JOB_ID)
        else:
            self.scheduler.pause_job(POLL_JOB_ID)
        logger.info(f"Auto refresh {'resumed' if enabled else 'paused'}")

    async def _set_health(self, health: ConnectionHealth):
        if health == self._health:
            return
        self._health = health
        await self.events.emit(PollEvent.HEALTH, health)

    async def _scheduled_tick(self):
        try:
            await self.tick()
        except Exception as e:
            logger.error(f"Error running poll tick: {e}")

    async def refresh(self) -> PollResult:
        """Run a tick now, outside the schedule."""
        return await self.tick()

    async def tick(self) -> PollResult:
        """Fetch, diff and publish one poll result. Never raises PollFailure."""
        self._tick_seq += 1
        seq = self._tick_seq

        await self._set_health(ConnectionHealth.CHECKING)

        try:
            orders = await self._backend.list_orders()
        except PollFailure as e:
            return await self._fail(seq, str(e))
        except Exception as e:
            logger.error(f"Unexpected poll error: {e}")
            return await self._fail(seq, str(e) or type(e).__name__)

        if seq < self._applied_seq:
            logger.debug(f"Discarding late poll result (tick {seq} < {self._applied_seq})")
            return PollResult(
                tick=seq,
                health=self._health,
                snapshot=self._snapshot,
                applied=False,
            )

        previous = self._snapshot
        current_ids = frozenset(order.id for order in orders)
        new_ids = current_ids - previous.ids
        has_new_orders = bool(previous.ids) and bool(new_ids)

        snapshot = OrderSnapshot(tick=seq, ids=current_ids, captured_at=datetime.utcnow())
        self._snapshot = snapshot
        self._orders = tuple(orders)
        self._applied_seq = seq
        self.last_success_at = snapshot.captured_at
        self.last_error = None

        await self._set_health(ConnectionHealth.CONNECTED)

        if has_new_orders:
            logger.info(f"New orders detected: {sorted(new_ids)}")

        result = PollResult(
            tick=seq,
            health=ConnectionHealth.CONNECTED,
            snapshot=snapshot,
            new_ids=new_ids if has_new_orders else frozenset(),
            has_new_orders=has_new_orders,
            orders=self._orders,
        )
        await self.events.emit(PollEvent.RESULT, result)
        return result

    async def _fail(self, seq: int, error: str) -> PollResult:
        if seq < self._applied_seq:
            logger.debug(f"Discarding late poll failure (tick {seq} < {self._applied_seq})")
            return PollResult(
                tick=seq,
                health=self._health,
                snapshot=self._snapshot,
                error=error,
                applied=False,
            )

        self._applied_seq = seq
        self.last_error = error
        logger.warning(f"Poll failed: {error}")
        await self._set_health(ConnectionHealth.ERROR)

        result = PollResult(
            tick=seq,
            health=ConnectionHealth.ERROR,
            snapshot=self._snapshot,
            orders=self._orders,
            error=error,
        )
        await self.events.emit(PollEvent.RESULT, result)
        return result
