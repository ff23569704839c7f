import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy import func, select, update
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.orders.constants import logger
from milkcart.schema.full_schema import DeliveryPerson, Orders, OrderStatus, PaymentStatus


async def get_order_by_pid(session, order_pid: uuid.UUID, user_id: Optional[int] = None) -> Orders:
    """Load one order ; when ``user_id`` is given the order must belong to that buyer."""
    stmt = select(Orders).where(Orders.public_id == order_pid)
    if user_id is not None:
        stmt = stmt.where(Orders.user_id == user_id)
    res = await session.execute(stmt)
    order = res.scalar_one_or_none()
    if not order:
        logger.warning("order.not_found", extra={"order_public_id": str(order_pid)})
        raise NotFoundError("Order not found", details={"order_id": str(order_pid)})
    return order


async def get_orders_by_pids(session, order_pids: Iterable[uuid.UUID]) -> List[Orders]:
    pids = list(order_pids)
    res = await session.execute(select(Orders).where(Orders.public_id.in_(pids)).order_by(Orders.id))
    return list(res.scalars().all())


async def list_orders(session, *, user_id: Optional[int] = None, status: Optional[str] = None,
                      payment_status: Optional[str] = None, delivery_person_id: Optional[int] = None,
                      limit: int = 20, offset: int = 0) -> List[Orders]:
    stmt = select(Orders)
    if user_id is not None:
        stmt = stmt.where(Orders.user_id == user_id)
    if status:
        stmt = stmt.where(Orders.status == status)
    if payment_status:
        stmt = stmt.where(Orders.payment_status == payment_status)
    if delivery_person_id is not None:
        stmt = stmt.where(Orders.delivery_person_id == delivery_person_id)
    stmt = stmt.order_by(Orders.created_at.desc(), Orders.id.desc()).limit(limit).offset(offset)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def list_unpaid_orders(session, user_id: int) -> List[Orders]:
    stmt = (
        select(Orders)
        .where(
            Orders.user_id == user_id,
            Orders.status != OrderStatus.CANCELLED.value,
            Orders.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]),
        )
        .order_by(Orders.created_at.desc())
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def count_orders_by_status(session) -> Dict[str, int]:
    res = await session.execute(select(Orders.status, func.count(Orders.id)).group_by(Orders.status))
    return {row[0]: int(row[1]) for row in res.all()}


async def transition_order(session, order_id: int, from_status: str, values: Dict[str, Any]) -> bool:
    """Compare-and-set on status: only applies when the row is still in ``from_status``."""
    stmt = (
        update(Orders)
        .where(Orders.id == order_id, Orders.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def increment_deliveries(session, delivery_person_id: int) -> None:
    stmt = (
        update(DeliveryPerson)
        .where(DeliveryPerson.id == delivery_person_id)
        .values(total_deliveries=DeliveryPerson.total_deliveries + 1)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def attach_delivery_person(session, order_id: int, delivery_person_id: int, current) -> bool:
    """Set the delivery person only on an open order nobody has been assigned to yet."""
    stmt = (
        update(Orders)
        .where(
            Orders.id == order_id,
            Orders.delivery_person_id.is_(None),
            Orders.status.in_([OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value]),
        )
        .values(delivery_person_id=delivery_person_id, assigned_at=current, updated_at=current)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def orders_created_between(session, start: datetime, end: datetime) -> List[Tuple[int, str, int, datetime]]:
    """(user_id, status, total_amount, created_at) for orders created in [start, end)."""
    stmt = (
        select(Orders.user_id, Orders.status, Orders.total_amount, Orders.created_at)
        .where(Orders.created_at >= start, Orders.created_at < end)
        .order_by(Orders.created_at)
    )
    res = await session.execute(stmt)
    return [(row[0], row[1], int(row[2]), row[3]) for row in res.all()]
