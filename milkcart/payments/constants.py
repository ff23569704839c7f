import re
from milkcart.common.logging_setup import get_logger

logger = get_logger("milkcart.payments")

UPI_ID_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+$")
REFERENCE_PREFIX = "REF"
DEFAULT_PAYMENT_NOTE = "MilkCart order payment"
SUBSCRIPTION_PAYMENT_NOTE = "MilkCart subscription payment"
