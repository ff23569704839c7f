from milkcart.common.logging_setup import get_logger

logger = get_logger("milkcart.app")
