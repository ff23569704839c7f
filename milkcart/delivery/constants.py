from datetime import time
from milkcart.common.logging_setup import get_logger
from milkcart.schema.full_schema import DeliveryShift

logger = get_logger("milkcart.delivery")

# ordering for date D closes at the start of D (last accepted minute is 23:59 on D-1)
ORDER_CUTOFF_TIME = time(23, 59)

# (start, end) local delivery windows
SHIFT_WINDOWS = {
    DeliveryShift.MORNING.value: (time(5, 0), time(11, 0)),
    DeliveryShift.EVENING.value: (time(17, 0), time(19, 0)),
}

SHIFT_LABELS = {
    DeliveryShift.MORNING.value: "5:00 AM - 11:00 AM",
    DeliveryShift.EVENING.value: "5:00 PM - 7:00 PM",
}

# shifts kept in the data model but not bookable right now
DISABLED_SHIFTS = {
    DeliveryShift.EVENING.value: "Evening delivery is temporarily disabled",
}

REASON_SAME_DAY = "Cutoff passed for this date, same-day delivery is not available"
REASON_PAST_DATE = "Delivery date is in the past"
REASON_BEYOND_WINDOW = "Delivery date is beyond the {days}-day booking window"
REASON_UNKNOWN_SHIFT = "Unknown delivery shift"
