import uuid
from typing import Optional
from milkcart.common.custom_exceptions import IllegalTransitionError, ValidationError
from milkcart.common.utils import now
from milkcart.delivery.constants import logger
from milkcart.delivery.models import DeliveryPersonCreateIn, StandingAssignmentIn
from milkcart.delivery.repository import (
    deactivate_assignments, get_active_assignment, get_assignment_by_pid, get_delivery_person_by_id,
    get_delivery_person_by_pid, insert_assignment, insert_delivery_person,
)
from milkcart.schema.full_schema import (
    AccountRole, ApprovalStatus, DeliveryPerson, DeliveryPersonShift, UserDeliveryAssignment,
)
from milkcart.user.repository import get_user_by_pid


async def register_delivery_person(session, payload: DeliveryPersonCreateIn) -> DeliveryPerson:
    person = await insert_delivery_person(session, {
        **payload.model_dump(exclude={"delivery_shift"}),
        "delivery_shift": payload.delivery_shift.value,
    })
    logger.info("delivery_person.created", extra={"delivery_person_public_id": str(person.public_id)})
    return person


async def review_delivery_person(session, person_pid: uuid.UUID, approve: bool, admin_id: int) -> DeliveryPerson:
    """Approval is a one-time decision on a pending registration."""
    person = await get_delivery_person_by_pid(session, person_pid)
    if person.approval_status != ApprovalStatus.PENDING.value:
        raise IllegalTransitionError(f"Delivery person is already {person.approval_status}",
                                     details={"approval_status": person.approval_status})

    current = now()
    person.approval_status = (ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED).value
    person.approved_by = admin_id
    person.approved_at = current
    person.updated_at = current
    session.add(person)
    await session.flush()

    logger.info("delivery_person.reviewed", extra={
        "delivery_person_public_id": str(person.public_id),
        "approval_status": person.approval_status,
    })
    return person


async def set_suspension(session, person_pid: uuid.UUID, suspended: bool, reason: Optional[str] = None) -> DeliveryPerson:
    person = await get_delivery_person_by_pid(session, person_pid)
    person.is_suspended = suspended
    person.suspension_reason = reason if suspended else None
    person.updated_at = now()
    session.add(person)
    await session.flush()

    logger.info("delivery_person.suspension", extra={
        "delivery_person_public_id": str(person.public_id),
        "is_suspended": suspended,
    })
    return person


def works_shift(person: DeliveryPerson, shift: str) -> bool:
    return person.delivery_shift in (DeliveryPersonShift.BOTH.value, shift)


async def create_standing_assignment(session, payload: StandingAssignmentIn, admin_id: int) -> UserDeliveryAssignment:
    """Route all of a buyer's future orders to one delivery person ; replaces any earlier assignment."""
    user = await get_user_by_pid(session, payload.user_id)
    if user.role != AccountRole.BUYER.value:
        raise ValidationError("Only buyers can have a standing delivery assignment", details={"role": user.role})

    person = await get_delivery_person_by_pid(session, payload.delivery_person_id)
    if not person.can_login:
        raise ValidationError("Delivery person is not approved or is suspended",
                              details={"approval_status": person.approval_status, "is_suspended": person.is_suspended})

    shifts = sorted({s.value for s in payload.delivery_shifts})
    uncovered = [s for s in shifts if not works_shift(person, s)]
    if uncovered:
        raise ValidationError(f"Delivery person works the {person.delivery_shift} shift",
                              details={"delivery_shifts": uncovered})

    current = now()
    replaced = await deactivate_assignments(session, {"deactivated_at": current, "updated_at": current}, user_id=user.id)
    assignment = await insert_assignment(session, {
        "user_id": user.id,
        "delivery_person_id": person.id,
        "assigned_by": admin_id,
        "delivery_shifts": shifts,
        "notes": payload.notes,
    })

    logger.info("assignment.created", extra={
        "assignment_public_id": str(assignment.public_id),
        "delivery_person_public_id": str(person.public_id),
        "replaced": replaced,
    })
    return assignment


async def end_standing_assignment(session, assignment_pid: uuid.UUID) -> UserDeliveryAssignment:
    assignment = await get_assignment_by_pid(session, assignment_pid)
    current = now()
    if not await deactivate_assignments(session, {"deactivated_at": current, "updated_at": current},
                                        assignment_id=assignment.id):
        raise IllegalTransitionError("Delivery assignment is already inactive")

    await session.refresh(assignment)
    logger.info("assignment.deactivated", extra={"assignment_public_id": str(assignment.public_id)})
    return assignment


async def standing_delivery_person(session, user_id: int, shift: str) -> Optional[DeliveryPerson]:
    """The buyer's assigned delivery person when they can take an order for ``shift`` right now."""
    assignment = await get_active_assignment(session, user_id)
    if assignment is None:
        return None
    if assignment.delivery_shifts and shift not in assignment.delivery_shifts:
        return None

    person = await get_delivery_person_by_id(session, assignment.delivery_person_id)
    if person is None or not person.can_login or not works_shift(person, shift):
        logger.info("assignment.skipped", extra={
            "assignment_public_id": str(assignment.public_id),
            "delivery_shift": shift,
        })
        return None
    return person
