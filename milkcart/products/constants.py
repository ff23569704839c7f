from milkcart.common.logging_setup import get_logger

logger = get_logger("milkcart.products")

CURSOR_MAX_AGE_SECONDS = 24 * 3600
CURSOR_TTL_SECONDS = 3600
