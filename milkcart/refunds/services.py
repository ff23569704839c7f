import uuid
from typing import Any, Dict, Optional

from sqlalchemy import update
from milkcart.common.custom_exceptions import AlreadyProcessedError, IllegalTransitionError, ValidationError
from milkcart.common.utils import now
from milkcart.orders.repository import get_order_by_pid
from milkcart.refunds.constants import logger
from milkcart.refunds.models import RefundRequestCreateIn, RefundStatusUpdateIn
from milkcart.refunds.repository import (
    get_refund_by_pid, has_open_refund_for_order, insert_refund_request, transition_refund,
)
from milkcart.refunds.utils import ACCEPTED_STATUSES, REFUND_TRANSITIONS
from milkcart.schema.full_schema import (
    Orders, OrderStatus, PaymentStatus, RefundRequest, RefundStatus, SubscriptionPaymentStatus, UserSubscription,
)
from milkcart.subscriptions.constants import ACTOR_ADMIN
from milkcart.subscriptions.repository import get_subscription_by_id
from milkcart.subscriptions.services import resolve_cancellation


async def request_order_refund(session, user_id: int, payload: RefundRequestCreateIn) -> RefundRequest:
    """Buyers can ask for their money back on an order that was paid and then cancelled."""
    order = await get_order_by_pid(session, payload.order_id, user_id=user_id)

    if order.status != OrderStatus.CANCELLED.value or order.payment_status != PaymentStatus.PAID.value:
        raise ValidationError("Only cancelled orders that were paid can be refunded",
                              details={"status": order.status, "payment_status": order.payment_status})

    if await has_open_refund_for_order(session, order.id):
        raise AlreadyProcessedError("A refund request already exists for this order",
                                    details={"order_number": order.order_number})

    return await insert_refund_request(session, {
        "user_id": user_id,
        "order_id": order.id,
        "original_amount": order.total_amount,
        "refund_amount": order.total_amount,
        "reason": payload.reason,
        "refund_method": payload.refund_method.value,
        "refund_details": payload.refund_details.model_dump(exclude_none=True),
    })


async def _mark_refunded(session, refund: RefundRequest, current) -> None:
    if refund.subscription_id is not None:
        await session.execute(
            update(UserSubscription)
            .where(UserSubscription.id == refund.subscription_id)
            .values(payment_status=SubscriptionPaymentStatus.REFUNDED.value, updated_at=current)
            .execution_options(synchronize_session=False)
        )
    if refund.order_id is not None:
        await session.execute(
            update(Orders)
            .where(Orders.id == refund.order_id, Orders.payment_status == PaymentStatus.PAID.value)
            .values(payment_status=PaymentStatus.REFUNDED.value, updated_at=current)
            .execution_options(synchronize_session=False)
        )


async def update_refund_status(session, refund_pid: uuid.UUID, admin_id: int,
                               payload: RefundStatusUpdateIn) -> RefundRequest:
    refund = await get_refund_by_pid(session, refund_pid)
    target = payload.status.value
    REFUND_TRANSITIONS.ensure(refund.status, target, details={"refund_id": str(refund.public_id)})

    current = now()
    values: Dict[str, Any] = {"status": target, "processed_by": admin_id, "processed_at": current, "updated_at": current}
    if payload.admin_notes is not None:
        values["admin_notes"] = payload.admin_notes
    if payload.refund_transaction_id is not None:
        values["refund_transaction_id"] = payload.refund_transaction_id
    if target == RefundStatus.COMPLETED.value:
        values["refund_date"] = current

    if not await transition_refund(session, refund.id, refund.status, values):
        raise IllegalTransitionError("Refund request changed concurrently, retry", details={"status": refund.status})

    if refund.subscription_id is not None:
        sub = await get_subscription_by_id(session, refund.subscription_id)
        if sub is not None:
            await resolve_cancellation(session, sub, approve=target in ACCEPTED_STATUSES, actor=ACTOR_ADMIN,
                                       reason=payload.admin_notes)

    if target == RefundStatus.COMPLETED.value:
        await _mark_refunded(session, refund, current)

    await session.refresh(refund)
    logger.info("refund.status.updated", extra={
        "refund_public_id": str(refund.public_id),
        "status": refund.status,
        "refund_amount": refund.refund_amount,
    })
    return refund


async def refund_targets(session, refunds) -> Dict[int, Dict[str, Optional[str]]]:
    """Public identifiers for the order / subscription each refund points at."""
    out: Dict[int, Dict[str, Optional[str]]] = {}
    for refund in refunds:
        sub_pid = None
        order_number = None
        if refund.subscription_id is not None:
            sub = await get_subscription_by_id(session, refund.subscription_id)
            sub_pid = str(sub.public_id) if sub else None
        if refund.order_id is not None:
            order = await session.get(Orders, refund.order_id)
            order_number = order.order_number if order else None
        out[refund.id] = {"subscription_public_id": sub_pid, "order_number": order_number}
    return out
