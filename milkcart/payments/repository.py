import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import and_, or_, select, update
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.payments.constants import logger
from milkcart.payments.utils import OPEN_STATUSES
from milkcart.schema.full_schema import (
    Orders, OrderStatus, PaymentSession, PaymentSessionOrder, PaymentStatus,
    SubscriptionPaymentStatus, SubscriptionStatus, UserSubscription, VerificationStatus,
)


async def get_payment_session_by_pid(session, payment_pid: uuid.UUID, user_id: Optional[int] = None) -> PaymentSession:
    stmt = select(PaymentSession).where(PaymentSession.public_id == payment_pid)
    if user_id is not None:
        stmt = stmt.where(PaymentSession.user_id == user_id)
    res = await session.execute(stmt)
    ps = res.scalar_one_or_none()
    if not ps:
        logger.warning("payment.session.not_found", extra={"payment_public_id": str(payment_pid)})
        raise NotFoundError("Payment session not found", details={"payment_id": str(payment_pid)})
    return ps


async def get_payment_session_by_id(session, ps_id: int) -> Optional[PaymentSession]:
    res = await session.execute(select(PaymentSession).where(PaymentSession.id == ps_id))
    return res.scalar_one_or_none()


async def find_submitted_session_for_subscription(session, subscription_id: int) -> Optional[PaymentSession]:
    stmt = (
        select(PaymentSession)
        .where(
            PaymentSession.subscription_id == subscription_id,
            PaymentSession.verification_status == VerificationStatus.SUBMITTED.value,
        )
        .order_by(PaymentSession.id.desc())
        .limit(1)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


def _status_filter(status: str, current: datetime):
    if status == VerificationStatus.EXPIRED.value:
        return and_(PaymentSession.verification_status.in_(OPEN_STATUSES), PaymentSession.expires_at < current)
    if status in OPEN_STATUSES:
        return and_(PaymentSession.verification_status == status, PaymentSession.expires_at >= current)
    return PaymentSession.verification_status == status


async def list_payment_sessions(session, current: datetime, *, user_id: Optional[int] = None,
                                status: Optional[str] = None, subscriptions_only: bool = False,
                                limit: int = 50, offset: int = 0) -> List[PaymentSession]:
    stmt = select(PaymentSession)
    if user_id is not None:
        stmt = stmt.where(PaymentSession.user_id == user_id)
    if status:
        stmt = stmt.where(_status_filter(status, current))
    if subscriptions_only:
        stmt = stmt.where(PaymentSession.subscription_id.is_not(None))
    stmt = stmt.order_by(PaymentSession.created_at.desc(), PaymentSession.id.desc()).limit(limit).offset(offset)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def order_numbers_for_sessions(session, ps_ids: List[int]) -> Dict[int, List[str]]:
    if not ps_ids:
        return {}
    stmt = (
        select(PaymentSessionOrder.payment_session_id, Orders.order_number)
        .join(Orders, Orders.id == PaymentSessionOrder.order_id)
        .where(PaymentSessionOrder.payment_session_id.in_(ps_ids))
        .order_by(PaymentSessionOrder.id)
    )
    res = await session.execute(stmt)
    out: Dict[int, List[str]] = {}
    for ps_id, number in res.all():
        out.setdefault(ps_id, []).append(number)
    return out


async def subscription_pids_for_sessions(session, sub_ids: List[int]) -> Dict[int, str]:
    ids = [i for i in set(sub_ids) if i is not None]
    if not ids:
        return {}
    res = await session.execute(select(UserSubscription.id, UserSubscription.public_id).where(UserSubscription.id.in_(ids)))
    return {row[0]: str(row[1]) for row in res.all()}


# ------------------------------------------------------------------------------------------ claims

def _claim_is_free(model, current: datetime):
    return or_(model.payment_session_id.is_(None), model.claim_expires_at.is_(None), model.claim_expires_at < current)


async def claim_orders(session, order_ids: List[int], user_id: int, ps_id: int,
                       claim_expires_at: datetime, current: datetime) -> int:
    """Atomically attach unpaid, unclaimed orders to a session. Returns rows claimed."""
    stmt = (
        update(Orders)
        .where(
            Orders.id.in_(order_ids),
            Orders.user_id == user_id,
            Orders.status != OrderStatus.CANCELLED.value,
            Orders.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]),
            _claim_is_free(Orders, current),
        )
        .values(payment_session_id=ps_id, claim_expires_at=claim_expires_at, updated_at=current)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount


async def claim_subscription(session, sub_id: int, user_id: int, ps_id: int,
                             claim_expires_at: datetime, current: datetime) -> bool:
    stmt = (
        update(UserSubscription)
        .where(
            UserSubscription.id == sub_id,
            UserSubscription.user_id == user_id,
            UserSubscription.status == SubscriptionStatus.PENDING.value,
            UserSubscription.payment_status.in_([SubscriptionPaymentStatus.PENDING.value, SubscriptionPaymentStatus.FAILED.value]),
            _claim_is_free(UserSubscription, current),
        )
        .values(payment_session_id=ps_id, claim_expires_at=claim_expires_at, updated_at=current)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def update_session_status(session, ps_id: int, from_status: str, values: Dict[str, Any],
                                not_expired_at: Optional[datetime] = None) -> bool:
    conds = [PaymentSession.id == ps_id, PaymentSession.verification_status == from_status]
    if not_expired_at is not None:
        conds.append(PaymentSession.expires_at >= not_expired_at)
    stmt = (
        update(PaymentSession)
        .where(*conds)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def update_claimed_orders(session, ps_id: int, values: Dict[str, Any], only_status: Optional[str] = None) -> int:
    conds = [
        Orders.payment_session_id == ps_id,
        Orders.id.in_(select(PaymentSessionOrder.order_id).where(PaymentSessionOrder.payment_session_id == ps_id)),
    ]
    if only_status:
        conds.append(Orders.status == only_status)
    stmt = update(Orders).where(*conds).values(**values).execution_options(synchronize_session=False)
    res = await session.execute(stmt)
    return res.rowcount


async def update_claimed_subscription(session, ps_id: int, sub_id: int, values: Dict[str, Any]) -> int:
    stmt = (
        update(UserSubscription)
        .where(UserSubscription.id == sub_id, UserSubscription.payment_session_id == ps_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount


async def transaction_id_in_use(session, upi_transaction_id: str, exclude_ps_id: int) -> bool:
    stmt = select(PaymentSession.id).where(
        PaymentSession.upi_transaction_id == upi_transaction_id,
        PaymentSession.id != exclude_ps_id,
        PaymentSession.verification_status.in_([VerificationStatus.SUBMITTED.value, VerificationStatus.VERIFIED.value]),
    ).limit(1)
    res = await session.execute(stmt)
    return res.scalar_one_or_none() is not None


async def withdraw_open_session(session, ps_id: int, current: datetime, reason: str) -> bool:
    """Cancel a session nobody has paid against yet and free everything it still claims."""
    stmt = (
        update(PaymentSession)
        .where(
            PaymentSession.id == ps_id,
            PaymentSession.verification_status == VerificationStatus.AWAITING_SUBMISSION.value,
        )
        .values(verification_status=VerificationStatus.CANCELLED.value, notes=reason, updated_at=current)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    if res.rowcount != 1:
        return False

    await session.execute(
        update(Orders)
        .where(
            Orders.payment_session_id == ps_id,
            Orders.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]),
        )
        .values(payment_session_id=None, claim_expires_at=None, updated_at=current)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        update(UserSubscription)
        .where(UserSubscription.payment_session_id == ps_id)
        .values(payment_session_id=None, claim_expires_at=None, updated_at=current)
        .execution_options(synchronize_session=False)
    )
    logger.info("payment.session.withdrawn", extra={"payment_session_id": ps_id, "reason": reason})
    return True
