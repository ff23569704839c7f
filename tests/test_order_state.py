from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from milkcart.common.custom_exceptions import IllegalTransitionError
from milkcart.orders.state import (
    CANCELLABLE_STATUSES, ORDER_TRANSITIONS, can_be_cancelled, can_mark_delivered, cancellation_block_reason,
)

IST = ZoneInfo("Asia/Kolkata")
DELIVERY = date(2026, 3, 12)


def test_transition_table():
    assert ORDER_TRANSITIONS.can("pending", "confirmed")
    assert ORDER_TRANSITIONS.can("confirmed", "delivered")
    assert not ORDER_TRANSITIONS.can("pending", "delivered")
    assert ORDER_TRANSITIONS.is_terminal("delivered")
    assert ORDER_TRANSITIONS.is_terminal("cancelled")
    assert CANCELLABLE_STATUSES == {"pending", "confirmed"}


def test_illegal_transition_raises_with_details():
    with pytest.raises(IllegalTransitionError) as exc:
        ORDER_TRANSITIONS.ensure("delivered", "cancelled")
    assert exc.value.details["from"] == "delivered"
    assert exc.value.details["to"] == "cancelled"


@pytest.mark.parametrize("moment,expected", [
    (datetime(2026, 3, 11, 19, 59, tzinfo=IST), True),
    (datetime(2026, 3, 11, 20, 0, tzinfo=IST), False),
    (datetime(2026, 3, 12, 6, 0, tzinfo=IST), False),
])
def test_morning_cancellation_closes_evening_before(moment, expected):
    assert can_be_cancelled("pending", DELIVERY, "morning", moment) is expected


@pytest.mark.parametrize("moment,expected", [
    (datetime(2026, 3, 12, 13, 59, tzinfo=IST), True),
    (datetime(2026, 3, 12, 14, 0, tzinfo=IST), False),
])
def test_evening_cancellation_closes_same_afternoon(moment, expected):
    assert can_be_cancelled("confirmed", DELIVERY, "evening", moment) is expected


def test_terminal_orders_are_never_cancellable():
    early = datetime(2026, 3, 1, 9, 0, tzinfo=IST)
    assert not can_be_cancelled("delivered", DELIVERY, "morning", early)
    assert "cannot be cancelled" in cancellation_block_reason("cancelled", DELIVERY, "morning", early)
    assert "window closed" in cancellation_block_reason("pending", DELIVERY, "morning",
                                                        datetime(2026, 3, 11, 21, 0, tzinfo=IST))


def test_delivery_confirmation_window():
    assert can_mark_delivered(DELIVERY, "morning", datetime(2026, 3, 12, 7, 0, tzinfo=IST)) == (True, None)

    ok, reason = can_mark_delivered(DELIVERY, "morning", datetime(2026, 3, 12, 12, 0, tzinfo=IST))
    assert not ok and "between" in reason

    ok, reason = can_mark_delivered(DELIVERY, "morning", datetime(2026, 3, 11, 7, 0, tzinfo=IST))
    assert not ok and "later date" in reason
