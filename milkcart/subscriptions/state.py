from milkcart.common.state_machine import TransitionTable
from milkcart.schema.full_schema import SubscriptionStatus as S

SUBSCRIPTION_TRANSITIONS = TransitionTable("Subscription", {
    S.PENDING.value: {S.PROCESSING.value, S.ACTIVE.value, S.CANCELLED.value},
    S.PROCESSING.value: {S.ACTIVE.value, S.PENDING.value},
    S.ACTIVE.value: {S.PAUSED.value, S.CANCELLATION_REQUESTED.value, S.COMPLETED.value, S.EXPIRED.value},
    S.PAUSED.value: {S.ACTIVE.value, S.CANCELLATION_REQUESTED.value, S.EXPIRED.value},
    S.CANCELLATION_REQUESTED.value: {S.CANCELLED.value, S.ACTIVE.value},
    S.CANCELLED.value: set(),
    S.COMPLETED.value: set(),
    S.EXPIRED.value: set(),
})

# statuses in which deliveries are still owed
RUNNING_STATUSES = (S.ACTIVE.value, S.PAUSED.value)
