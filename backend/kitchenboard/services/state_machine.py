"""Order status state machine.

    pending --> processing --> completed
       |            |
       +--> on-hold <+
              |
              +--> processing

completed, cancelled and refunded have no transitions here. A transition that
is not in the table is never offered; the machine does not police it at
commit time, the backend does.
"""
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from ..schemas.order import OrderStatus, QuickAction, StatusTransitionIntent
from .backend_client import OrderBackendClient

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[OrderStatus, Tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.PROCESSING, OrderStatus.ON_HOLD),
    OrderStatus.PROCESSING: (OrderStatus.COMPLETED, OrderStatus.ON_HOLD),
    OrderStatus.ON_HOLD: (OrderStatus.PROCESSING,),
}

# Target of a committed swipe
NEXT_STATUS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.COMPLETED,
    OrderStatus.ON_HOLD: OrderStatus.PROCESSING,
}

QUICK_ACTIONS: Dict[OrderStatus, Tuple[Tuple[str, OrderStatus], ...]] = {
    OrderStatus.PENDING: (("Start", OrderStatus.PROCESSING), ("Hold", OrderStatus.ON_HOLD)),
    OrderStatus.PROCESSING: (("Ready", OrderStatus.COMPLETED), ("Hold", OrderStatus.ON_HOLD)),
    OrderStatus.ON_HOLD: (("Resume", OrderStatus.PROCESSING),),
}


def available_transitions(status: OrderStatus) -> Tuple[OrderStatus, ...]:
    return TRANSITIONS.get(status, ())


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    return NEXT_STATUS.get(status)


def is_available(current: OrderStatus, target: OrderStatus) -> bool:
    return target in available_transitions(current)


def quick_actions(status: OrderStatus) -> List[QuickAction]:
    return [QuickAction(label=label, status=target) for label, target in QUICK_ACTIONS.get(status, ())]


class OrderStatusMachine:
    """Commits transition intents to the backend.

    Local order state is never changed here; after the backend accepts a
    change the poller is asked for an immediate refresh, and that refresh is
    what the board shows.
    """

    def __init__(
        self,
        backend: OrderBackendClient,
        refresh: Optional[Callable[[], Awaitable[object]]] = None,
    ):
        self._backend = backend
        self._refresh = refresh

    async def commit(self, intent: StatusTransitionIntent):
        """Issue the status update for an intent.

        Raises:
            StatusUpdateFailed: the backend did not apply the change
        """
        logger.info(
            f"Committing order #{intent.order_id} -> {intent.target_status.value} ({intent.origin.value})"
        )
        updated = await self._backend.update_order_status(intent.order_id, intent.target_status)

        if self._refresh is not None:
            try:
                await self._refresh()
            except Exception as e:
                logger.error(f"Refresh after status update failed: {e}")
        return updated
