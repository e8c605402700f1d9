# checkout/services/order_status.py
"""
Order status machine.

Forward path: pending -> confirmed -> processing -> shipped -> delivered,
with cancelled reachable from any non-terminal state. Admin updates may
move an order to any listed status; the only automatic move is
pending -> confirmed when a payment is recorded.
"""
from datetime import datetime
from typing import List

from checkout.domain.errors import InvalidStatusError
from checkout.domain.schemas import TimelineStep

PENDING = "pending"
CONFIRMED = "confirmed"
PROCESSING = "processing"
SHIPPED = "shipped"
DELIVERED = "delivered"
CANCELLED = "cancelled"

ORDER_STATUSES = (PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED)
TERMINAL_STATUSES = frozenset({DELIVERED, CANCELLED})
# statuses that require a recorded payment
PAID_STATUSES = frozenset({CONFIRMED, PROCESSING, SHIPPED, DELIVERED})

FORWARD_STEPS = (
    (PENDING, "Order Placed", "receipt"),
    (CONFIRMED, "Payment Confirmed", "check-circle"),
    (PROCESSING, "Processing", "gear"),
    (SHIPPED, "Shipped", "package"),
    (DELIVERED, "Delivered", "home"),
)
CANCELLED_STEP = (CANCELLED, "Cancelled", "x-circle")


def validate_status(status: str) -> str:
    normalized = (status or "").strip().lower()
    if normalized not in ORDER_STATUSES:
        raise InvalidStatusError(
            f"Invalid order status '{status}', expected one of: {', '.join(ORDER_STATUSES)}"
        )
    return normalized


def is_terminal(status: str) -> bool:
    return validate_status(status) in TERMINAL_STATUSES


def get_timeline(
    status: str,
    order_date: datetime,
    updated_at: datetime | None,
    notes: str | None = None,
) -> List[TimelineStep]:
    status = validate_status(status)

    if status == CANCELLED:
        code, label, icon = CANCELLED_STEP
        return [
            TimelineStep(
                status=code,
                label=label,
                icon=icon,
                is_completed=True,
                is_current=True,
                timestamp=updated_at or order_date,
                notes=notes,
            )
        ]

    position = [code for code, _, _ in FORWARD_STEPS].index(status)
    timeline = []
    for index, (code, label, icon) in enumerate(FORWARD_STEPS):
        completed = index <= position
        if not completed:
            timestamp = None
        elif code == PENDING:
            timestamp = order_date
        elif code == CONFIRMED:
            timestamp = updated_at or order_date
        else:
            timestamp = updated_at

        timeline.append(
            TimelineStep(
                status=code,
                label=label,
                icon=icon,
                is_completed=completed,
                is_current=index == position,
                timestamp=timestamp,
                notes=notes if index == position else None,
            )
        )
    return timeline
