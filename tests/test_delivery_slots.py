from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from milkcart.delivery.constants import REASON_PAST_DATE, REASON_SAME_DAY, REASON_UNKNOWN_SHIFT
from milkcart.delivery.slots import get_available_delivery_slots, validate_delivery_slot

IST = ZoneInfo("Asia/Kolkata")


def ist(*args):
    return datetime(*args, tzinfo=IST)


def test_slots_start_tomorrow_and_cover_a_week():
    days = get_available_delivery_slots(ist(2026, 3, 10, 10, 0))

    assert len(days) == 7
    assert days[0].date == date(2026, 3, 11)
    assert days[0].is_tomorrow is True
    assert days[0].label == "Tomorrow"
    assert days[-1].date == date(2026, 3, 17)
    assert all(not d.is_tomorrow for d in days[1:])


def test_morning_open_evening_disabled():
    days = get_available_delivery_slots(ist(2026, 3, 10, 10, 0))

    for day in days:
        assert day.morning.available is True
        assert day.morning.time_slot == "5:00 AM - 11:00 AM"
        assert day.evening.available is False
        assert day.evening.reason == "Evening delivery is temporarily disabled"


def test_slot_dict_is_json_friendly():
    out = get_available_delivery_slots(ist(2026, 3, 10, 10, 0))[0].to_dict()
    assert out["date"] == "2026-03-11"
    assert out["morning"]["available"] is True
    assert out["evening"]["shift"] == "evening"


@pytest.mark.parametrize("moment,expected", [
    (ist(2026, 3, 10, 23, 58, 59), True),
    (ist(2026, 3, 10, 23, 59, 59), True),
    (ist(2026, 3, 11, 0, 0, 0), False),
    (ist(2026, 3, 11, 6, 30), False),
])
def test_morning_cutoff_includes_the_whole_2359_minute(moment, expected):
    ok, reason = validate_delivery_slot(date(2026, 3, 11), "morning", moment)
    assert ok is expected
    if not ok:
        assert reason == REASON_SAME_DAY


def test_server_clock_in_utc_is_converted_to_store_time():
    # 18:29 UTC is 23:59 IST
    assert validate_delivery_slot(date(2026, 3, 11), "morning", datetime(2026, 3, 10, 18, 29, tzinfo=timezone.utc))[0]
    assert not validate_delivery_slot(date(2026, 3, 11), "morning", datetime(2026, 3, 10, 18, 30, tzinfo=timezone.utc))[0]


def test_booking_window_edges():
    now = ist(2026, 3, 10, 9, 0)
    assert validate_delivery_slot(date(2026, 3, 17), "morning", now) == (True, None)

    ok, reason = validate_delivery_slot(date(2026, 3, 18), "morning", now)
    assert not ok
    assert "7-day" in reason


def test_past_date_and_unknown_shift():
    now = ist(2026, 3, 10, 9, 0)
    assert validate_delivery_slot(date(2026, 3, 9), "morning", now) == (False, REASON_PAST_DATE)
    assert validate_delivery_slot(date(2026, 3, 12), "night", now) == (False, REASON_UNKNOWN_SHIFT)


def test_evening_rejected_at_submit():
    ok, reason = validate_delivery_slot(date(2026, 3, 12), "evening", ist(2026, 3, 10, 9, 0))
    assert not ok
    assert reason == "Evening delivery is temporarily disabled"
