"""Order schemas - read snapshots of backend-owned orders."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Order lifecycle states as the backend reports them."""
    PENDING = "pending"
    PROCESSING = "processing"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class TransitionOrigin(str, Enum):
    """What produced a transition intent."""
    GESTURE = "gesture"
    ACTION = "action"


class MetaEntry(BaseModel):
    """One key/value metadata pair. Keys are not unique within an order."""
    model_config = ConfigDict(extra="ignore")

    key: str
    value: Optional[object] = None


class LineItem(BaseModel):
    """A single ordered item."""
    model_config = ConfigDict(extra="ignore")

    name: str
    quantity: int = 1
    meta_data: List[dict] = Field(default_factory=list)


class Billing(BaseModel):
    """Billing contact."""
    model_config = ConfigDict(extra="ignore")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class Order(BaseModel):
    """An order as returned by GET /orders."""
    model_config = ConfigDict(extra="ignore")

    id: int
    status: OrderStatus
    date_created: Optional[datetime] = None
    meta_data: List[MetaEntry] = Field(default_factory=list)
    line_items: List[LineItem] = Field(default_factory=list)
    billing: Optional[Billing] = None
    customer_note: Optional[str] = None
    total: Optional[str] = None

    def meta(self, *keys: str, default=None):
        """Look up metadata by key; the last matching entry wins."""
        found = default
        for entry in self.meta_data:
            if entry.key in keys:
                found = entry.value
        return found

    @property
    def order_type(self) -> str:
        return self.meta("order_type", default="pickup")

    @property
    def pickup_time(self) -> Optional[str]:
        return self.meta("pickup_time", "scheduled_time")


class StatusTransitionIntent(BaseModel):
    """A requested status change, consumed once by the state machine."""
    model_config = ConfigDict(frozen=True)

    order_id: int
    target_status: OrderStatus
    origin: TransitionOrigin


class QuickAction(BaseModel):
    """A button offered next to an order card."""
    label: str
    status: OrderStatus


class BoardOrder(BaseModel):
    """An order card on the kitchen board."""
    order: Order
    next_status: Optional[OrderStatus] = None
    actions: List[QuickAction] = Field(default_factory=list)


class BoardColumns(BaseModel):
    """Orders grouped by kitchen column."""
    pending: List[BoardOrder] = Field(default_factory=list)
    processing: List[BoardOrder] = Field(default_factory=list)
    on_hold: List[BoardOrder] = Field(default_factory=list)
    completed: List[BoardOrder] = Field(default_factory=list)


class BoardResponse(BaseModel):
    """Everything the kitchen display needs to render."""
    columns: BoardColumns
    health: str
    degraded: bool
    last_success_at: Optional[str] = None
    muted: bool
    auto_refresh: bool
    commit_threshold: float
    feedback_max_offset: float


class DragRequest(BaseModel):
    """Drag update from an order card."""
    offset: float
    released: bool = False


class DragResponse(BaseModel):
    """Outcome of a drag update or release."""
    order_id: int
    offset: float
    intensity: float
    committed: bool = False
    target_status: Optional[OrderStatus] = None


class StatusUpdateRequest(BaseModel):
    """Quick-action status change."""
    status: OrderStatus


class StatusUpdateResponse(BaseModel):
    """Result of a committed transition."""
    success: bool
    order_id: int
    status: OrderStatus
    origin: TransitionOrigin
