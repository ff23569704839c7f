from datetime import time
from milkcart.common.logging_setup import get_logger
from milkcart.schema.full_schema import DeliveryShift

logger = get_logger("milkcart.orders")

# cancellation closes at (days relative to delivery date, local time)
CANCELLATION_CUTOFFS = {
    DeliveryShift.MORNING.value: (-1, time(20, 0)),
    DeliveryShift.EVENING.value: (0, time(14, 0)),
}

# window (local) in which a delivery person may mark an order delivered
DELIVERY_CONFIRMATION_WINDOWS = {
    DeliveryShift.MORNING.value: (time(5, 0), time(11, 0)),
    DeliveryShift.EVENING.value: (time(16, 0), time(20, 0)),
}

ORDER_NUMBER_PREFIX = "ORD"
MAX_CUSTOMER_NOTES = 500
