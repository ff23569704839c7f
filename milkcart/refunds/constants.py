from milkcart.common.logging_setup import get_logger

logger = get_logger("milkcart.refunds")

# a request in one of these blocks a second request for the same order
OPEN_REFUND_STATUSES = ("pending", "approved", "processed")
