"""Delivery slot calculation.

Pure functions over an aware "now"; the server clock is the only clock that
counts. Results are recomputed on every request and never cached.
"""
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from milkcart.common.utils import store_tz, to_store_time
from milkcart.delivery.constants import (
    DISABLED_SHIFTS, ORDER_CUTOFF_TIME, REASON_BEYOND_WINDOW, REASON_PAST_DATE,
    REASON_SAME_DAY, REASON_UNKNOWN_SHIFT, SHIFT_LABELS, SHIFT_WINDOWS,
)
from milkcart.schema.full_schema import DeliveryShift

DEFAULT_LOOKAHEAD_DAYS = 7


@dataclass(frozen=True)
class ShiftAvailability:
    shift: str
    available: bool
    cutoff_passed: bool
    reason: Optional[str]
    time_slot: str
    cutoff_at: str


@dataclass(frozen=True)
class DeliveryDay:
    date: date
    label: str
    is_tomorrow: bool
    morning: ShiftAvailability
    evening: ShiftAvailability

    def to_dict(self) -> dict:
        out = asdict(self)
        out["date"] = self.date.isoformat()
        return out


def order_cutoff(delivery_date: date) -> datetime:
    """Last minute (local) at which an order for ``delivery_date`` is accepted."""
    return datetime.combine(delivery_date - timedelta(days=1), ORDER_CUTOFF_TIME, tzinfo=store_tz())


def ordering_open(delivery_date: date, now_local: datetime) -> bool:
    # the whole 23:59 minute counts, so compare against the next midnight
    closes_at = datetime.combine(delivery_date, datetime.min.time(), tzinfo=store_tz())
    return now_local < closes_at


def shift_availability(delivery_date: date, shift: str, now: datetime) -> ShiftAvailability:
    now_local = to_store_time(now)
    cutoff_at = order_cutoff(delivery_date).isoformat()
    cutoff_passed = not ordering_open(delivery_date, now_local)

    if shift not in SHIFT_WINDOWS:
        return ShiftAvailability(shift, False, cutoff_passed, REASON_UNKNOWN_SHIFT, "", cutoff_at)

    time_slot = SHIFT_LABELS[shift]

    if shift in DISABLED_SHIFTS:
        return ShiftAvailability(shift, False, cutoff_passed, DISABLED_SHIFTS[shift], time_slot, cutoff_at)

    if cutoff_passed:
        reason = REASON_PAST_DATE if delivery_date < now_local.date() else REASON_SAME_DAY
        return ShiftAvailability(shift, False, True, reason, time_slot, cutoff_at)

    return ShiftAvailability(shift, True, False, None, time_slot, cutoff_at)


def _label(day: date, tomorrow: date) -> str:
    if day == tomorrow:
        return "Tomorrow"
    return day.strftime("%a, %d %b")


def get_available_delivery_slots(now: datetime, lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS) -> List[DeliveryDay]:
    """Upcoming delivery dates, tomorrow first, each annotated per shift."""
    today = to_store_time(now).date()
    tomorrow = today + timedelta(days=1)

    days = []
    for offset in range(lookahead_days):
        day = tomorrow + timedelta(days=offset)
        days.append(DeliveryDay(
            date=day,
            label=_label(day, tomorrow),
            is_tomorrow=day == tomorrow,
            morning=shift_availability(day, DeliveryShift.MORNING.value, now),
            evening=shift_availability(day, DeliveryShift.EVENING.value, now),
        ))
    return days


def validate_delivery_slot(delivery_date: date, shift: str, now: datetime,
                           lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS) -> Tuple[bool, Optional[str]]:
    """Re-check a client-chosen slot at submit time -> (valid, reason)."""
    today = to_store_time(now).date()
    last_bookable = today + timedelta(days=lookahead_days)

    if delivery_date > last_bookable:
        return False, REASON_BEYOND_WINDOW.format(days=lookahead_days)

    availability = shift_availability(delivery_date, shift, now)
    if not availability.available:
        return False, availability.reason
    return True, None
