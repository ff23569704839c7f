from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from milkcart.common.state_machine import TransitionTable
from milkcart.common.utils import store_tz, to_store_time
from milkcart.orders.constants import CANCELLATION_CUTOFFS, DELIVERY_CONFIRMATION_WINDOWS
from milkcart.schema.full_schema import OrderStatus

ORDER_TRANSITIONS = TransitionTable("Order", {
    OrderStatus.PENDING.value: {OrderStatus.CONFIRMED.value, OrderStatus.CANCELLED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value},
    OrderStatus.DELIVERED.value: set(),
    OrderStatus.CANCELLED.value: set(),
})

CANCELLABLE_STATUSES = ORDER_TRANSITIONS.sources_of(OrderStatus.CANCELLED.value)


def cancellation_cutoff(delivery_date: date, shift: str) -> datetime:
    day_offset, at = CANCELLATION_CUTOFFS[shift]
    return datetime.combine(delivery_date + timedelta(days=day_offset), at, tzinfo=store_tz())


def can_be_cancelled(status: str, delivery_date: date, shift: str, now: datetime) -> bool:
    if status not in CANCELLABLE_STATUSES:
        return False
    if shift not in CANCELLATION_CUTOFFS:
        return False
    return to_store_time(now) < cancellation_cutoff(delivery_date, shift)


def cancellation_block_reason(status: str, delivery_date: date, shift: str, now: datetime) -> Optional[str]:
    if status not in CANCELLABLE_STATUSES:
        return f"Order in status '{status}' cannot be cancelled"
    if not can_be_cancelled(status, delivery_date, shift, now):
        cutoff = cancellation_cutoff(delivery_date, shift)
        return f"Cancellation window closed at {cutoff.strftime('%Y-%m-%d %H:%M')}"
    return None


def delivery_confirmation_window(delivery_date: date, shift: str) -> Tuple[datetime, datetime]:
    start, end = DELIVERY_CONFIRMATION_WINDOWS[shift]
    tz = store_tz()
    return datetime.combine(delivery_date, start, tzinfo=tz), datetime.combine(delivery_date, end, tzinfo=tz)


def can_mark_delivered(delivery_date: date, shift: str, now: datetime) -> Tuple[bool, Optional[str]]:
    """Delivery may only be confirmed on the delivery date inside the shift window."""
    local = to_store_time(now)
    if local.date() < delivery_date:
        return False, "Order is scheduled for a later date"
    if shift not in DELIVERY_CONFIRMATION_WINDOWS:
        return False, "Unknown delivery shift"

    start, end = DELIVERY_CONFIRMATION_WINDOWS[shift]
    if not (start <= local.time() <= end):
        return False, f"Deliveries for the {shift} shift can be confirmed between {start.strftime('%H:%M')} and {end.strftime('%H:%M')}"
    return True, None
