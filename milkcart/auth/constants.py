from milkcart.common.logging_setup import get_logger

logger = get_logger("milkcart.auth")

BUYER_ROLE = "buyer"
ADMIN_ROLE = "admin"
DELIVERY_ROLE = "delivery"
