import uuid
from datetime import date, timedelta
from typing import Any, Dict, Optional

from milkcart.common.custom_exceptions import IllegalTransitionError, ValidationError
from milkcart.common.utils import now, store_today
from milkcart.payments.repository import withdraw_open_session
from milkcart.refunds.repository import insert_refund_request
from milkcart.subscriptions.constants import ACTOR_SYSTEM, ACTOR_USER, logger
from milkcart.subscriptions.models import CancelSubscriptionIn, SubscribeIn
from milkcart.subscriptions.repository import (
    add_history, bump_delivery_counter, get_plan_by_pid, get_subscription_by_pid,
    list_overdue_ids, transition_subscription,
)
from milkcart.subscriptions.state import SUBSCRIPTION_TRANSITIONS
from milkcart.schema.full_schema import (
    SubscriptionPaymentStatus, SubscriptionPlan, SubscriptionStatus, UserSubscription,
)


def discounted_amount(price: int, discount: int) -> int:
    return int(round(price * (1 - discount / 100)))


def remaining_deliveries(sub: UserSubscription) -> int:
    return max(0, sub.total_deliveries - sub.completed_deliveries - sub.skipped_deliveries)


async def apply_transition(session, sub: UserSubscription, target: SubscriptionStatus, *, actor: str,
                           action: str, reason: Optional[str] = None,
                           values: Optional[Dict[str, Any]] = None) -> UserSubscription:
    """Move ``sub`` along the transition table with a status compare-and-set and record history."""
    from_status = sub.status
    SUBSCRIPTION_TRANSITIONS.ensure(from_status, target.value, details={"subscription_id": str(sub.public_id)})

    payload = {"status": target.value, "updated_at": now(), **(values or {})}
    if not await transition_subscription(session, sub.id, from_status, payload):
        raise IllegalTransitionError("Subscription status changed concurrently, retry", details={"status": from_status})

    await add_history(session, sub.id, action, from_status, target.value, actor, reason)
    await session.refresh(sub)

    logger.info("subscription.transition", extra={
        "subscription_public_id": str(sub.public_id),
        "from": from_status,
        "to": target.value,
        "actor": actor,
    })
    return sub


async def subscribe(session, user_id: int, payload: SubscribeIn) -> UserSubscription:
    plan = await get_plan_by_pid(session, payload.plan_id)

    today = store_today()
    start_date = payload.start_date or today
    if start_date < today:
        raise ValidationError("Start date cannot be in the past", details={"start_date": start_date.isoformat()})

    end_date = start_date + timedelta(days=plan.duration_days)
    next_delivery = start_date + timedelta(days=1) if start_date == today else start_date

    sub = UserSubscription(
        user_id=user_id,
        plan_id=plan.id,
        status=SubscriptionStatus.PENDING.value,
        payment_status=SubscriptionPaymentStatus.PENDING.value,
        payment_method=payload.payment_method.value,
        total_amount=discounted_amount(plan.price, plan.discount),
        start_date=start_date,
        end_date=end_date,
        next_delivery_date=next_delivery,
        total_deliveries=plan.duration_days,
        delivery_address=payload.delivery_address.model_dump(),
        preferred_delivery_time=payload.preferred_delivery_time.value,
        special_instructions=payload.special_instructions,
    )
    session.add(sub)
    await session.flush()
    await add_history(session, sub.id, "created", None, SubscriptionStatus.PENDING.value, ACTOR_USER)

    logger.info("subscription.create.success", extra={
        "subscription_public_id": str(sub.public_id),
        "plan": plan.name,
        "total_amount": sub.total_amount,
    })
    return sub


async def expire_overdue_subscriptions(session, user_id: Optional[int] = None) -> int:
    """Lazy expiry: running subscriptions past their end date move to expired."""
    today = store_today()
    expired = 0
    for sub_id, status in await list_overdue_ids(session, today, user_id=user_id):
        applied = await transition_subscription(session, sub_id, status, {
            "status": SubscriptionStatus.EXPIRED.value,
            "next_delivery_date": None,
            "updated_at": now(),
        })
        if applied:
            await add_history(session, sub_id, "expired", status, SubscriptionStatus.EXPIRED.value, ACTOR_SYSTEM)
            expired += 1
    if expired:
        logger.info("subscription.expired", extra={"count": expired})
    return expired


async def pause_subscription(session, sub_pid: uuid.UUID, user_id: int, reason: Optional[str] = None) -> UserSubscription:
    sub = await get_subscription_by_pid(session, sub_pid, user_id=user_id)
    return await apply_transition(session, sub, SubscriptionStatus.PAUSED, actor=ACTOR_USER, action="paused", reason=reason)


async def resume_subscription(session, sub_pid: uuid.UUID, user_id: int) -> UserSubscription:
    sub = await get_subscription_by_pid(session, sub_pid, user_id=user_id)
    if sub.status == SubscriptionStatus.PAUSED.value and sub.end_date < store_today():
        raise IllegalTransitionError("Subscription has already ended")

    values = {}
    tomorrow = store_today() + timedelta(days=1)
    if sub.next_delivery_date is None or sub.next_delivery_date < tomorrow:
        values["next_delivery_date"] = tomorrow
    return await apply_transition(session, sub, SubscriptionStatus.ACTIVE, actor=ACTOR_USER, action="resumed",
                                  values=values)


async def cancel_subscription(session, sub_pid: uuid.UUID, user_id: int, payload: CancelSubscriptionIn) -> Dict[str, Any]:
    """Unpaid subscriptions cancel outright ; running ones request cancellation with a prorated refund."""
    sub = await get_subscription_by_pid(session, sub_pid, user_id=user_id)

    if sub.status == SubscriptionStatus.PENDING.value:
        if sub.payment_session_id is not None:
            await withdraw_open_session(session, sub.payment_session_id, now(), "Withdrawn: subscription was cancelled")
        sub = await apply_transition(session, sub, SubscriptionStatus.CANCELLED, actor=ACTOR_USER, action="cancelled",
                                     reason=payload.reason, values={
                                         "cancelled_at": now(),
                                         "cancellation_reason": payload.reason,
                                         "next_delivery_date": None,
                                     })
        return {"subscription": sub, "refund_request": None}

    SUBSCRIPTION_TRANSITIONS.ensure(sub.status, SubscriptionStatus.CANCELLATION_REQUESTED.value)

    refund = None
    if sub.payment_status == SubscriptionPaymentStatus.PAID.value:
        if payload.refund_method is None or payload.refund_details is None:
            raise ValidationError("Refund method and details are required to cancel a paid subscription")

        plan_daily_price = await _plan_daily_price(session, sub)
        days_remaining = remaining_deliveries(sub)
        refund_amount = min(sub.total_amount, days_remaining * plan_daily_price)

        refund = await insert_refund_request(session, {
            "user_id": user_id,
            "subscription_id": sub.id,
            "original_amount": sub.total_amount,
            "refund_amount": refund_amount,
            "days_used": sub.completed_deliveries + sub.skipped_deliveries,
            "days_remaining": days_remaining,
            "reason": payload.reason,
            "refund_method": payload.refund_method.value,
            "refund_details": payload.refund_details.model_dump(exclude_none=True),
        })

    sub = await apply_transition(session, sub, SubscriptionStatus.CANCELLATION_REQUESTED, actor=ACTOR_USER,
                                 action="cancellation_requested", reason=payload.reason,
                                 values={"cancellation_reason": payload.reason})
    return {"subscription": sub, "refund_request": refund}


async def _plan_daily_price(session, sub: UserSubscription) -> int:
    plan = await session.get(SubscriptionPlan, sub.plan_id)
    return plan.daily_price if plan else 0


async def _advance_delivery(session, sub: UserSubscription, field: str, action: str, actor: str,
                            reason: Optional[str] = None) -> UserSubscription:
    if sub.status != SubscriptionStatus.ACTIVE.value:
        raise IllegalTransitionError(f"Deliveries can only be updated for active subscriptions, not '{sub.status}'")
    if remaining_deliveries(sub) == 0:
        raise IllegalTransitionError("All deliveries for this subscription are already accounted for")

    base = sub.next_delivery_date or store_today()
    next_date: Optional[date] = base + timedelta(days=1)

    if not await bump_delivery_counter(session, sub, field, next_date):
        raise IllegalTransitionError("Subscription changed concurrently, retry")

    await add_history(session, sub.id, action, sub.status, sub.status, actor, reason)
    await session.refresh(sub)

    if remaining_deliveries(sub) == 0:
        sub = await apply_transition(session, sub, SubscriptionStatus.COMPLETED, actor=ACTOR_SYSTEM,
                                     action="completed", values={"next_delivery_date": None})
    return sub


async def skip_delivery(session, sub_pid: uuid.UUID, user_id: int, reason: Optional[str] = None) -> UserSubscription:
    sub = await get_subscription_by_pid(session, sub_pid, user_id=user_id)
    return await _advance_delivery(session, sub, "skipped_deliveries", "delivery_skipped", ACTOR_USER, reason)


async def complete_delivery(session, sub_pid: uuid.UUID, actor: str) -> UserSubscription:
    sub = await get_subscription_by_pid(session, sub_pid)
    return await _advance_delivery(session, sub, "completed_deliveries", "delivery_completed", actor)


async def resolve_cancellation(session, sub: UserSubscription, approve: bool, actor: str,
                               reason: Optional[str] = None) -> UserSubscription:
    """Admin decision on a cancellation request: cancel for good or put the subscription back to active."""
    if sub.status != SubscriptionStatus.CANCELLATION_REQUESTED.value:
        return sub

    if approve:
        return await apply_transition(session, sub, SubscriptionStatus.CANCELLED, actor=actor, action="cancelled",
                                      reason=reason, values={"cancelled_at": now(), "next_delivery_date": None})

    values = {"cancellation_reason": None}
    tomorrow = store_today() + timedelta(days=1)
    if sub.next_delivery_date is None or sub.next_delivery_date < tomorrow:
        values["next_delivery_date"] = tomorrow
    return await apply_transition(session, sub, SubscriptionStatus.ACTIVE, actor=actor, action="cancellation_rejected",
                                  reason=reason, values=values)
