import uuid
from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.delivery.constants import logger
from milkcart.schema.full_schema import DeliveryPerson, UserDeliveryAssignment


async def get_delivery_person_by_pid(session, person_pid: uuid.UUID) -> DeliveryPerson:
    res = await session.execute(select(DeliveryPerson).where(DeliveryPerson.public_id == person_pid))
    person = res.scalar_one_or_none()
    if not person:
        logger.warning("delivery_person.not_found", extra={"delivery_person_public_id": str(person_pid)})
        raise NotFoundError("Delivery person not found", details={"delivery_person_id": str(person_pid)})
    return person


async def get_delivery_person_by_id(session, person_id: int) -> Optional[DeliveryPerson]:
    res = await session.execute(select(DeliveryPerson).where(DeliveryPerson.id == person_id))
    return res.scalar_one_or_none()


async def list_delivery_persons(session, approval_status: Optional[str] = None,
                                shift: Optional[str] = None, available_only: bool = False) -> List[DeliveryPerson]:
    stmt = select(DeliveryPerson)
    if approval_status:
        stmt = stmt.where(DeliveryPerson.approval_status == approval_status)
    if shift:
        stmt = stmt.where(DeliveryPerson.delivery_shift.in_([shift, "both"]))
    if available_only:
        stmt = stmt.where(DeliveryPerson.approval_status == "approved", DeliveryPerson.is_suspended.is_(False))
    res = await session.execute(stmt.order_by(DeliveryPerson.created_at.desc()))
    return list(res.scalars().all())


async def insert_delivery_person(session, values: dict) -> DeliveryPerson:
    person = DeliveryPerson(**values)
    session.add(person)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Delivery person with this phone already exists")
    return person


# ---------------------------------------------------------------------------------------------- standing assignments

async def get_active_assignment(session, user_id: int) -> Optional[UserDeliveryAssignment]:
    stmt = select(UserDeliveryAssignment).where(
        UserDeliveryAssignment.user_id == user_id,
        UserDeliveryAssignment.is_active.is_(True),
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def get_assignment_by_pid(session, assignment_pid: uuid.UUID) -> UserDeliveryAssignment:
    res = await session.execute(select(UserDeliveryAssignment).where(UserDeliveryAssignment.public_id == assignment_pid))
    assignment = res.scalar_one_or_none()
    if not assignment:
        logger.warning("assignment.not_found", extra={"assignment_public_id": str(assignment_pid)})
        raise NotFoundError("Delivery assignment not found", details={"assignment_id": str(assignment_pid)})
    return assignment


async def list_assignments(session, delivery_person_id: Optional[int] = None,
                           active_only: bool = True) -> List[UserDeliveryAssignment]:
    stmt = select(UserDeliveryAssignment)
    if delivery_person_id is not None:
        stmt = stmt.where(UserDeliveryAssignment.delivery_person_id == delivery_person_id)
    if active_only:
        stmt = stmt.where(UserDeliveryAssignment.is_active.is_(True))
    res = await session.execute(stmt.order_by(UserDeliveryAssignment.created_at.desc(), UserDeliveryAssignment.id.desc()))
    return list(res.scalars().all())


async def deactivate_assignments(session, values: Dict[str, Any], *, user_id: Optional[int] = None,
                                 assignment_id: Optional[int] = None) -> int:
    conds = [UserDeliveryAssignment.is_active.is_(True)]
    if user_id is not None:
        conds.append(UserDeliveryAssignment.user_id == user_id)
    if assignment_id is not None:
        conds.append(UserDeliveryAssignment.id == assignment_id)
    stmt = (
        update(UserDeliveryAssignment)
        .where(*conds)
        .values(is_active=False, **values)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount


async def insert_assignment(session, values: Dict[str, Any]) -> UserDeliveryAssignment:
    assignment = UserDeliveryAssignment(**values)
    session.add(assignment)
    await session.flush()
    return assignment


async def get_delivery_persons_by_ids(session, person_ids) -> Dict[int, DeliveryPerson]:
    ids = list(set(person_ids))
    if not ids:
        return {}
    res = await session.execute(select(DeliveryPerson).where(DeliveryPerson.id.in_(ids)))
    return {p.id: p for p in res.scalars().all()}
