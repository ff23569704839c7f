import uuid
from datetime import timedelta
from typing import Any, Dict, List

from milkcart.common.custom_exceptions import (
    AlreadyProcessedError, DuplicateSessionError, NotFoundError, SessionExpiredError, ValidationError,
)
from milkcart.common.utils import now, store_today
from milkcart.config.store_config import store_settings
from milkcart.orders.repository import get_orders_by_pids
from milkcart.payments.constants import DEFAULT_PAYMENT_NOTE, SUBSCRIPTION_PAYMENT_NOTE, logger
from milkcart.payments.models import PaymentSessionCreateIn, PaymentSubmitIn, PaymentVerifyIn
from milkcart.payments.repository import (
    claim_orders, claim_subscription, get_payment_session_by_pid, order_numbers_for_sessions,
    subscription_pids_for_sessions, transaction_id_in_use, update_claimed_orders, update_session_status,
)
from milkcart.payments.utils import (
    PAYMENT_SESSION_TRANSITIONS, build_upi_link, effective_status, generate_reference_number,
    is_valid_upi_id, payment_session_to_dict,
)
from milkcart.schema.full_schema import (
    OrderStatus, PaymentSession, PaymentSessionOrder, PaymentStatus, SubscriptionPaymentStatus,
    SubscriptionStatus, VerificationStatus,
)
from milkcart.subscriptions.constants import ACTOR_ADMIN, ACTOR_USER
from milkcart.subscriptions.repository import get_subscription_by_id, get_subscription_by_pid
from milkcart.subscriptions.services import apply_transition

PAYABLE_ORDER_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)


def _new_session(user_id: int, amount: int, note: str, expires_at, subscription_id=None) -> PaymentSession:
    if not is_valid_upi_id(store_settings.ADMIN_UPI_ID):
        logger.error("payment.config.invalid_upi", extra={"upi_id": store_settings.ADMIN_UPI_ID})
        raise ValidationError("Store UPI id is misconfigured")

    reference = generate_reference_number()
    return PaymentSession(
        reference_number=reference,
        user_id=user_id,
        subscription_id=subscription_id,
        total_amount=amount,
        currency=store_settings.PAYMENT_CURRENCY,
        upi_id=store_settings.ADMIN_UPI_ID,
        upi_name=store_settings.ADMIN_UPI_NAME,
        qr_code_url=build_upi_link(store_settings.ADMIN_UPI_ID, store_settings.ADMIN_UPI_NAME, amount,
                                   reference, note, store_settings.PAYMENT_CURRENCY),
        expires_at=expires_at,
    )


async def _session_for_orders(session, user_id: int, order_pids: List[uuid.UUID], current, expires_at) -> PaymentSession:
    orders = await get_orders_by_pids(session, order_pids)
    by_pid = {o.public_id: o for o in orders if o.user_id == user_id}

    missing = [str(pid) for pid in order_pids if pid not in by_pid]
    if missing:
        raise NotFoundError("Order not found", details={"order_ids": missing})

    for order in by_pid.values():
        if order.status == OrderStatus.CANCELLED.value:
            raise ValidationError("Cancelled orders cannot be paid", details={"order_number": order.order_number})
        if order.payment_status not in PAYABLE_ORDER_STATUSES:
            raise AlreadyProcessedError("Order is already paid or awaiting verification",
                                        details={"order_number": order.order_number,
                                                 "payment_status": order.payment_status})

    total = sum(o.total_amount for o in by_pid.values())
    ps = _new_session(user_id, total, DEFAULT_PAYMENT_NOTE, expires_at)
    session.add(ps)
    await session.flush()

    order_ids = [o.id for o in by_pid.values()]
    claimed = await claim_orders(session, order_ids, user_id, ps.id, expires_at, current)
    if claimed != len(order_ids):
        details = {"order_ids": [str(pid) for pid in order_pids], "claimed": claimed}
        await session.rollback()
        logger.warning("payment.session.duplicate", extra=details)
        raise DuplicateSessionError("One or more orders already have an active payment session", details=details)

    session.add_all([PaymentSessionOrder(payment_session_id=ps.id, order_id=o.id, amount=o.total_amount)
                     for o in by_pid.values()])
    await session.flush()
    return ps


async def _session_for_subscription(session, user_id: int, sub_pid: uuid.UUID, current, expires_at) -> PaymentSession:
    sub = await get_subscription_by_pid(session, sub_pid, user_id=user_id)
    if sub.status != SubscriptionStatus.PENDING.value:
        raise AlreadyProcessedError("Subscription is not awaiting payment", details={"status": sub.status})
    if sub.payment_status not in (SubscriptionPaymentStatus.PENDING.value, SubscriptionPaymentStatus.FAILED.value):
        raise AlreadyProcessedError("Subscription is already paid", details={"payment_status": sub.payment_status})

    ps = _new_session(user_id, sub.total_amount, SUBSCRIPTION_PAYMENT_NOTE, expires_at, subscription_id=sub.id)
    session.add(ps)
    await session.flush()

    if not await claim_subscription(session, sub.id, user_id, ps.id, expires_at, current):
        details = {"subscription_id": str(sub_pid)}
        await session.rollback()
        logger.warning("payment.session.duplicate", extra=details)
        raise DuplicateSessionError("Subscription already has an active payment session", details=details)
    return ps


async def create_session(session, user_id: int, payload: PaymentSessionCreateIn) -> PaymentSession:
    """Open a UPI payment session for a set of orders or for one subscription."""
    current = now()
    expires_at = current + timedelta(minutes=store_settings.PAYMENT_SESSION_TTL_MINUTES)

    if payload.order_ids:
        ps = await _session_for_orders(session, user_id, payload.order_ids, current, expires_at)
    else:
        ps = await _session_for_subscription(session, user_id, payload.subscription_id, current, expires_at)

    logger.info("payment.session.created", extra={
        "payment_public_id": str(ps.public_id),
        "reference_number": ps.reference_number,
        "total_amount": ps.total_amount,
    })
    return ps


def _raise_for_state(ps: PaymentSession, current) -> None:
    state = effective_status(ps.verification_status, ps.expires_at, current)
    if state == VerificationStatus.EXPIRED.value:
        raise SessionExpiredError("Payment session has expired", details={"reference_number": ps.reference_number})
    if state in (VerificationStatus.VERIFIED.value, VerificationStatus.REJECTED.value, VerificationStatus.CANCELLED.value):
        raise AlreadyProcessedError(f"Payment session is already {state}", details={"verification_status": state})


async def submit_payment(session, payment_pid: uuid.UUID, user_id: int, payload: PaymentSubmitIn) -> PaymentSession:
    """Buyer reports the UPI transaction id ; the session then waits for an admin decision."""
    ps = await get_payment_session_by_pid(session, payment_pid, user_id=user_id)
    current = now()

    _raise_for_state(ps, current)
    if ps.verification_status == VerificationStatus.SUBMITTED.value:
        raise AlreadyProcessedError("Payment details were already submitted",
                                    details={"verification_status": ps.verification_status})

    if await transaction_id_in_use(session, payload.upi_transaction_id, ps.id):
        raise AlreadyProcessedError("This UPI transaction id has already been used")

    review_until = current + timedelta(hours=store_settings.PAYMENT_VERIFICATION_TTL_HOURS)
    applied = await update_session_status(session, ps.id, VerificationStatus.AWAITING_SUBMISSION.value, {
        "verification_status": VerificationStatus.SUBMITTED.value,
        "upi_transaction_id": payload.upi_transaction_id,
        "upi_reference_number": payload.upi_reference_number,
        "submitted_at": current,
        "expires_at": review_until,
        "updated_at": current,
    }, not_expired_at=current)
    if not applied:
        await session.refresh(ps)
        _raise_for_state(ps, current)
        raise AlreadyProcessedError("Payment details were already submitted")

    if ps.subscription_id is not None:
        sub = await get_subscription_by_id(session, ps.subscription_id)
        await apply_transition(session, sub, SubscriptionStatus.PROCESSING, actor=ACTOR_USER, action="payment_submitted",
                               values={"claim_expires_at": review_until})
    else:
        await update_claimed_orders(session, ps.id, {
            "payment_status": PaymentStatus.PROCESSING.value,
            "claim_expires_at": review_until,
            "updated_at": current,
        })

    await session.refresh(ps)
    logger.info("payment.submit.success", extra={
        "payment_public_id": str(ps.public_id),
        "reference_number": ps.reference_number,
    })
    return ps


async def verify_payment(session, payment_pid: uuid.UUID, admin_id: int, payload: PaymentVerifyIn) -> PaymentSession:
    """Admin decision on a submitted session, cascaded onto the claimed orders or subscription."""
    ps = await get_payment_session_by_pid(session, payment_pid)
    current = now()

    _raise_for_state(ps, current)
    target = VerificationStatus.VERIFIED if payload.decision == "verify" else VerificationStatus.REJECTED
    PAYMENT_SESSION_TRANSITIONS.ensure(ps.verification_status, target.value,
                                       details={"reference_number": ps.reference_number})

    applied = await update_session_status(session, ps.id, VerificationStatus.SUBMITTED.value, {
        "verification_status": target.value,
        "verified_at": current,
        "verified_by": admin_id,
        "notes": payload.notes,
        "updated_at": current,
    }, not_expired_at=current)
    if not applied:
        await session.refresh(ps)
        _raise_for_state(ps, current)
        raise AlreadyProcessedError("Payment session was decided concurrently")

    if target == VerificationStatus.VERIFIED:
        await _apply_verified(session, ps, current)
    else:
        await _apply_rejected(session, ps, current, payload.notes)

    await session.refresh(ps)
    logger.info(f"payment.verify.{target.value}", extra={
        "payment_public_id": str(ps.public_id),
        "reference_number": ps.reference_number,
        "total_amount": ps.total_amount,
    })
    return ps


async def _apply_verified(session, ps: PaymentSession, current) -> None:
    if ps.subscription_id is not None:
        sub = await get_subscription_by_id(session, ps.subscription_id)
        values: Dict[str, Any] = {
            "payment_status": SubscriptionPaymentStatus.PAID.value,
            "paid_at": current,
            "claim_expires_at": None,
        }
        today = store_today(current)
        if sub.next_delivery_date is not None and sub.next_delivery_date <= today:
            values["next_delivery_date"] = today + timedelta(days=1)
        await apply_transition(session, sub, SubscriptionStatus.ACTIVE, actor=ACTOR_ADMIN, action="payment_verified",
                               values=values)
        return

    await update_claimed_orders(session, ps.id, {
        "payment_status": PaymentStatus.PAID.value,
        "paid_at": current,
        "claim_expires_at": None,
        "updated_at": current,
    })
    # a verified payment is the approval for orders still waiting on one
    await update_claimed_orders(session, ps.id, {
        "status": OrderStatus.CONFIRMED.value,
        "confirmed_at": current,
    }, only_status=OrderStatus.PENDING.value)


async def _apply_rejected(session, ps: PaymentSession, current, notes) -> None:
    if ps.subscription_id is not None:
        sub = await get_subscription_by_id(session, ps.subscription_id)
        await apply_transition(session, sub, SubscriptionStatus.PENDING, actor=ACTOR_ADMIN, action="payment_rejected",
                               reason=notes, values={
                                   "payment_status": SubscriptionPaymentStatus.FAILED.value,
                                   "payment_session_id": None,
                                   "claim_expires_at": None,
                               })
        return

    await update_claimed_orders(session, ps.id, {
        "payment_status": PaymentStatus.FAILED.value,
        "payment_session_id": None,
        "claim_expires_at": None,
        "updated_at": current,
    })


async def describe_sessions(session, sessions: List[PaymentSession]) -> List[Dict[str, Any]]:
    current = now()
    numbers = await order_numbers_for_sessions(session, [ps.id for ps in sessions])
    sub_pids = await subscription_pids_for_sessions(session, [ps.subscription_id for ps in sessions])
    return [
        payment_session_to_dict(ps, current, numbers.get(ps.id), sub_pids.get(ps.subscription_id))
        for ps in sessions
    ]
