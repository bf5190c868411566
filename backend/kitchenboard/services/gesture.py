"""Gesture interpreter - swipe right to advance an order."""
import logging
from typing import Optional

from ..config import settings
from ..schemas.order import OrderStatus, StatusTransitionIntent, TransitionOrigin
from .state_machine import next_status

logger = logging.getLogger(__name__)


class GestureInterpreter:
    """Turns a horizontal drag into a committed or reverted transition.

    Only rightward drags count; leftward offsets clamp to zero and never map
    to an action.
    """

    def __init__(self, commit_threshold: Optional[float] = None, feedback_max: Optional[float] = None):
        self.commit_threshold = settings.commit_threshold if commit_threshold is None else commit_threshold
        self.feedback_max = settings.feedback_max_offset if feedback_max is None else feedback_max

    @staticmethod
    def clamp(offset: float) -> float:
        return max(0.0, float(offset))

    def feedback_intensity(self, offset: float) -> float:
        """0..1 highlight strength for the card, saturating at feedback_max."""
        return min(self.clamp(offset), self.feedback_max) / self.feedback_max

    def release(
        self,
        order_id: int,
        current_status: OrderStatus,
        offset: float,
    ) -> Optional[StatusTransitionIntent]:
        """Interpret the drag-end offset. None means the card snaps back."""
        target = next_status(current_status)
        if target is None:
            return None
        if self.clamp(offset) < self.commit_threshold:
            return None
        logger.debug(f"Swipe committed order #{order_id} -> {target.value}")
        return StatusTransitionIntent(
            order_id=order_id,
            target_status=target,
            origin=TransitionOrigin.GESTURE,
        )
