from milkcart.common.logging_setup import get_logger

logger = get_logger("milkcart.subscriptions")

ALLOWED_DURATIONS = (7, 15, 30)

ACTOR_USER = "user"
ACTOR_ADMIN = "admin"
ACTOR_SYSTEM = "system"
