from milkcart.common.logging_setup import get_logger

logger = get_logger("milkcart.admin")

# widest date range a report may span, in days
REPORT_MAX_DAYS = 366
