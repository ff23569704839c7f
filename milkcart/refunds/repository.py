import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy import select, update
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.refunds.constants import OPEN_REFUND_STATUSES, logger
from milkcart.schema.full_schema import RefundRequest


async def insert_refund_request(session, values: Dict[str, Any]) -> RefundRequest:
    refund = RefundRequest(**values)
    session.add(refund)
    await session.flush()
    logger.info("refund.request.created", extra={
        "refund_public_id": str(refund.public_id),
        "refund_amount": refund.refund_amount,
        "refund_method": refund.refund_method,
    })
    return refund


async def get_refund_by_pid(session, refund_pid: uuid.UUID, user_id: Optional[int] = None) -> RefundRequest:
    stmt = select(RefundRequest).where(RefundRequest.public_id == refund_pid)
    if user_id is not None:
        stmt = stmt.where(RefundRequest.user_id == user_id)
    res = await session.execute(stmt)
    refund = res.scalar_one_or_none()
    if not refund:
        raise NotFoundError("Refund request not found", details={"refund_id": str(refund_pid)})
    return refund


async def list_refunds(session, *, user_id: Optional[int] = None, status: Optional[str] = None,
                       limit: int = 50, offset: int = 0) -> List[RefundRequest]:
    stmt = select(RefundRequest)
    if user_id is not None:
        stmt = stmt.where(RefundRequest.user_id == user_id)
    if status:
        stmt = stmt.where(RefundRequest.status == status)
    stmt = stmt.order_by(RefundRequest.created_at.desc(), RefundRequest.id.desc()).limit(limit).offset(offset)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def has_open_refund_for_order(session, order_id: int) -> bool:
    stmt = select(RefundRequest.id).where(
        RefundRequest.order_id == order_id,
        RefundRequest.status.in_(OPEN_REFUND_STATUSES),
    ).limit(1)
    res = await session.execute(stmt)
    return res.scalar_one_or_none() is not None


async def transition_refund(session, refund_id: int, from_status: str, values: Dict[str, Any]) -> bool:
    stmt = (
        update(RefundRequest)
        .where(RefundRequest.id == refund_id, RefundRequest.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1
