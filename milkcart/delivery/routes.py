import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from fastapi.params import Query
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.auth.constants import DELIVERY_ROLE
from milkcart.auth.dependencies import require_roles
from milkcart.common.utils import now, success_response
from milkcart.config.store_config import store_settings
from milkcart.db.dependencies import get_session
from milkcart.delivery.models import DeliveryPersonCreateIn, StandingAssignmentIn, SuspendIn
from milkcart.delivery.repository import (
    get_delivery_person_by_id, get_delivery_person_by_pid, get_delivery_persons_by_ids, list_assignments,
    list_delivery_persons,
)
from milkcart.delivery.services import (
    create_standing_assignment, end_standing_assignment, register_delivery_person, review_delivery_person,
    set_suspension,
)
from milkcart.delivery.slots import get_available_delivery_slots
from milkcart.delivery.utils import assignment_to_dict, delivery_person_to_dict
from milkcart.orders.models import MarkDeliveredIn
from milkcart.orders.repository import list_orders
from milkcart.orders.services import mark_delivered, notify_order_event
from milkcart.orders.utils import order_to_dict
from milkcart.schema.full_schema import ApprovalStatus, DeliveryShift, OrderStatus
from milkcart.user.repository import get_users_by_ids

slots_router=APIRouter()
delivery_person_router=APIRouter(dependencies=[require_roles(DELIVERY_ROLE)])
delivery_admin_router=APIRouter()
assignments_admin_router=APIRouter()


@slots_router.get("/slots")
async def delivery_slots():
    current = now()
    days = get_available_delivery_slots(current, store_settings.SLOT_LOOKAHEAD_DAYS)
    return success_response({"server_time": current.isoformat(), "slots": [d.to_dict() for d in days]})


# ---------------------------------------------------------------------------------------------- delivery person

@delivery_person_router.get("/me")
async def my_profile(request:Request, session: AsyncSession = Depends(get_session)):
    person = await get_delivery_person_by_id(session, request.state.delivery_person_id)
    return success_response(delivery_person_to_dict(person))


@delivery_person_router.get("/orders")
async def my_assigned_orders(request:Request,
    order_status: Optional[OrderStatus] = Query(OrderStatus.CONFIRMED, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session)):

    orders = await list_orders(session, delivery_person_id=request.state.delivery_person_id,
                               status=order_status.value if order_status else None, limit=limit, offset=offset)
    return success_response({"items": [order_to_dict(o) for o in orders], "limit": limit, "offset": offset})


@delivery_person_router.post("/orders/{order_id}/deliver")
async def deliver_order(request:Request, order_id: uuid.UUID, payload: Optional[MarkDeliveredIn] = None,
                        session: AsyncSession = Depends(get_session)):

    order = await mark_delivered(session, order_id, request.state.delivery_person_id,
                                 payload.delivery_notes if payload else None)
    await session.commit()

    notify_order_event("order_delivered", order)
    return success_response({"message": "order delivered", "order": order_to_dict(order)})


# ---------------------------------------------------------------------------------------------- admin roster

@delivery_admin_router.post("")
async def add_delivery_person(payload: DeliveryPersonCreateIn, session: AsyncSession = Depends(get_session)):
    person = await register_delivery_person(session, payload)
    await session.commit()
    return success_response({"message": "delivery person registered", "delivery_person": delivery_person_to_dict(person)},
                            status_code=status.HTTP_201_CREATED)


@delivery_admin_router.get("")
async def roster(
    approval_status: Optional[ApprovalStatus] = Query(None),
    shift: Optional[DeliveryShift] = Query(None),
    available_only: bool = Query(False),
    session: AsyncSession = Depends(get_session)):

    people = await list_delivery_persons(session, approval_status=approval_status.value if approval_status else None,
                                         shift=shift.value if shift else None, available_only=available_only)
    return success_response({"items": [delivery_person_to_dict(p) for p in people]})


@delivery_admin_router.post("/{person_id}/approve")
async def approve_delivery_person(request:Request, person_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    person = await review_delivery_person(session, person_id, True, request.state.user_identifier)
    await session.commit()
    return success_response({"message": "delivery person approved", "delivery_person": delivery_person_to_dict(person)})


@delivery_admin_router.post("/{person_id}/reject")
async def reject_delivery_person(request:Request, person_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    person = await review_delivery_person(session, person_id, False, request.state.user_identifier)
    await session.commit()
    return success_response({"message": "delivery person rejected", "delivery_person": delivery_person_to_dict(person)})


@delivery_admin_router.post("/{person_id}/suspend")
async def suspend_delivery_person(person_id: uuid.UUID, payload: SuspendIn, session: AsyncSession = Depends(get_session)):
    person = await set_suspension(session, person_id, True, payload.reason)
    await session.commit()
    return success_response({"message": "delivery person suspended", "delivery_person": delivery_person_to_dict(person)})


@delivery_admin_router.post("/{person_id}/unsuspend")
async def unsuspend_delivery_person(person_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    person = await set_suspension(session, person_id, False)
    await session.commit()
    return success_response({"message": "delivery person reinstated", "delivery_person": delivery_person_to_dict(person)})


# ---------------------------------------------------------------------------------------------- standing assignments

async def _describe_assignments(session, assignments):
    people = await get_delivery_persons_by_ids(session, [a.delivery_person_id for a in assignments])
    users = await get_users_by_ids(session, [a.user_id for a in assignments])
    return [assignment_to_dict(a, people.get(a.delivery_person_id), users.get(a.user_id)) for a in assignments]


@assignments_admin_router.post("")
async def assign_buyer(request:Request, payload: StandingAssignmentIn, session: AsyncSession = Depends(get_session)):
    assignment = await create_standing_assignment(session, payload, request.state.user_identifier)
    await session.commit()
    return success_response({"message": "buyer assigned", "assignment": (await _describe_assignments(session, [assignment]))[0]},
                            status_code=status.HTTP_201_CREATED)


@assignments_admin_router.get("")
async def standing_assignments(
    delivery_person_id: Optional[uuid.UUID] = Query(None),
    active_only: bool = Query(True),
    session: AsyncSession = Depends(get_session)):

    person_id = None
    if delivery_person_id is not None:
        person_id = (await get_delivery_person_by_pid(session, delivery_person_id)).id
    assignments = await list_assignments(session, delivery_person_id=person_id, active_only=active_only)
    return success_response({"items": await _describe_assignments(session, assignments)})


@assignments_admin_router.delete("/{assignment_id}")
async def end_assignment(assignment_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    assignment = await end_standing_assignment(session, assignment_id)
    await session.commit()
    return success_response({"message": "assignment deactivated", "assignment": (await _describe_assignments(session, [assignment]))[0]})
