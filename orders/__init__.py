"""Invoice and work order entities with their status rules."""

from orders.models import Invoice, OrderRef, WorkOrder, utcnow
from orders.status import (
    OrderStatus,
    OrderStatusFSM,
    TransitionError,
    apply_status_patch,
    archive_patch,
    pickup_patch,
)

__all__ = [
    "Invoice",
    "WorkOrder",
    "OrderRef",
    "utcnow",
    "OrderStatus",
    "OrderStatusFSM",
    "TransitionError",
    "apply_status_patch",
    "archive_patch",
    "pickup_patch",
]
