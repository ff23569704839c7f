import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, update
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.subscriptions.constants import logger
from milkcart.subscriptions.state import RUNNING_STATUSES
from milkcart.schema.full_schema import SubscriptionHistory, SubscriptionPlan, SubscriptionStatus, UserSubscription


# ------------------------------------------------------------------------------------------ plans

async def get_plan_by_pid(session, plan_pid: uuid.UUID, active_only: bool = True) -> SubscriptionPlan:
    stmt = select(SubscriptionPlan).where(SubscriptionPlan.public_id == plan_pid)
    if active_only:
        stmt = stmt.where(SubscriptionPlan.is_active.is_(True))
    res = await session.execute(stmt)
    plan = res.scalar_one_or_none()
    if not plan:
        logger.warning("plan.not_found", extra={"plan_public_id": str(plan_pid)})
        raise NotFoundError("Subscription plan not found", details={"plan_id": str(plan_pid)})
    return plan


async def get_plans_by_ids(session, plan_ids) -> Dict[int, SubscriptionPlan]:
    ids = list(set(plan_ids))
    if not ids:
        return {}
    res = await session.execute(select(SubscriptionPlan).where(SubscriptionPlan.id.in_(ids)))
    return {p.id: p for p in res.scalars().all()}


async def list_plans(session, milk_type: Optional[str] = None, active_only: bool = True) -> List[SubscriptionPlan]:
    stmt = select(SubscriptionPlan)
    if active_only:
        stmt = stmt.where(SubscriptionPlan.is_active.is_(True))
    if milk_type:
        stmt = stmt.where(SubscriptionPlan.milk_type == milk_type)
    stmt = stmt.order_by(SubscriptionPlan.milk_type, SubscriptionPlan.duration_days, SubscriptionPlan.price)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def insert_plan(session, values: Dict[str, Any]) -> SubscriptionPlan:
    plan = SubscriptionPlan(**values)
    session.add(plan)
    await session.flush()
    return plan


# ------------------------------------------------------------------------------------------ user subscriptions

async def get_subscription_by_pid(session, sub_pid: uuid.UUID, user_id: Optional[int] = None) -> UserSubscription:
    stmt = select(UserSubscription).where(UserSubscription.public_id == sub_pid)
    if user_id is not None:
        stmt = stmt.where(UserSubscription.user_id == user_id)
    res = await session.execute(stmt)
    sub = res.scalar_one_or_none()
    if not sub:
        logger.warning("subscription.not_found", extra={"subscription_public_id": str(sub_pid)})
        raise NotFoundError("Subscription not found", details={"subscription_id": str(sub_pid)})
    return sub


async def get_subscription_by_id(session, sub_id: int) -> Optional[UserSubscription]:
    res = await session.execute(select(UserSubscription).where(UserSubscription.id == sub_id))
    return res.scalar_one_or_none()


async def list_subscriptions(session, *, user_id: Optional[int] = None, status: Optional[str] = None,
                             limit: int = 50, offset: int = 0) -> List[UserSubscription]:
    stmt = select(UserSubscription)
    if user_id is not None:
        stmt = stmt.where(UserSubscription.user_id == user_id)
    if status:
        stmt = stmt.where(UserSubscription.status == status)
    stmt = stmt.order_by(UserSubscription.created_at.desc(), UserSubscription.id.desc()).limit(limit).offset(offset)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def list_deliveries_due(session, day: date) -> List[UserSubscription]:
    stmt = (
        select(UserSubscription)
        .where(
            UserSubscription.status == SubscriptionStatus.ACTIVE.value,
            UserSubscription.next_delivery_date <= day,
            UserSubscription.end_date >= day,
        )
        .order_by(UserSubscription.next_delivery_date, UserSubscription.id)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def list_overdue_ids(session, today: date, user_id: Optional[int] = None) -> List[Tuple[int, str]]:
    stmt = select(UserSubscription.id, UserSubscription.status).where(
        UserSubscription.status.in_(RUNNING_STATUSES),
        UserSubscription.end_date < today,
    )
    if user_id is not None:
        stmt = stmt.where(UserSubscription.user_id == user_id)
    res = await session.execute(stmt)
    return [(row[0], row[1]) for row in res.all()]


async def transition_subscription(session, sub_id: int, from_status: str, values: Dict[str, Any]) -> bool:
    """Compare-and-set on status."""
    stmt = (
        update(UserSubscription)
        .where(UserSubscription.id == sub_id, UserSubscription.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def bump_delivery_counter(session, sub: UserSubscription, field: str, next_delivery_date: Optional[date]) -> bool:
    """Increment completed/skipped only while deliveries remain and nobody raced us."""
    column = getattr(UserSubscription, field)
    stmt = (
        update(UserSubscription)
        .where(
            UserSubscription.id == sub.id,
            UserSubscription.status == SubscriptionStatus.ACTIVE.value,
            UserSubscription.completed_deliveries + UserSubscription.skipped_deliveries < UserSubscription.total_deliveries,
            UserSubscription.next_delivery_date == sub.next_delivery_date,
        )
        .values({column: column + 1, UserSubscription.next_delivery_date: next_delivery_date})
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def add_history(session, sub_id: int, action: str, from_status: Optional[str], to_status: Optional[str],
                      actor: str, reason: Optional[str] = None) -> None:
    session.add(SubscriptionHistory(
        subscription_id=sub_id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        actor=actor,
        reason=reason,
    ))
    await session.flush()


async def list_history(session, sub_id: int) -> List[SubscriptionHistory]:
    stmt = select(SubscriptionHistory).where(SubscriptionHistory.subscription_id == sub_id).order_by(SubscriptionHistory.id)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def update_plan(session, plan: SubscriptionPlan, values: Dict[str, Any]) -> SubscriptionPlan:
    for key, value in values.items():
        setattr(plan, key, value)
    session.add(plan)
    await session.flush()
    return plan
