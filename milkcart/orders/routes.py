import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from fastapi.params import Query
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.auth.constants import ADMIN_ROLE, BUYER_ROLE
from milkcart.auth.dependencies import require_roles
from milkcart.common.utils import now, success_response
from milkcart.db.dependencies import get_session
from milkcart.orders.constants import logger
from milkcart.orders.models import AssignDeliveryIn, OrderCancelIn, OrderCreateIn, OrderStatusUpdateIn
from milkcart.orders.repository import get_order_by_pid, list_orders, list_unpaid_orders
from milkcart.orders.services import admin_update_status, assign_delivery_person, cancel_order, create_order, notify_order_event
from milkcart.orders.utils import order_to_dict
from milkcart.schema.full_schema import CancelledBy, OrderStatus, PaymentStatus

orders_router=APIRouter(dependencies=[require_roles(BUYER_ROLE, ADMIN_ROLE)])
orders_admin_router=APIRouter()


@orders_router.post("")
async def place_order(request:Request, payload: OrderCreateIn, session: AsyncSession = Depends(get_session)):

    user_identifier = request.state.user_identifier
    logger.info("order.create.attempt", extra={"user_public_id": request.state.user_public_id})

    order = await create_order(session, user_identifier, payload)
    await session.commit()

    notify_order_event("order_placed", order)
    return success_response({"message": "order placed", "order": order_to_dict(order, now())},
                            status_code=status.HTTP_201_CREATED)


@orders_router.get("")
async def my_orders(request:Request,
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session)):

    orders = await list_orders(session, user_id=request.state.user_identifier,
                               status=order_status.value if order_status else None, limit=limit, offset=offset)
    current = now()
    return success_response({"items": [order_to_dict(o, current) for o in orders], "limit": limit, "offset": offset})


@orders_router.get("/unpaid")
async def my_unpaid_orders(request:Request, session: AsyncSession = Depends(get_session)):
    orders = await list_unpaid_orders(session, request.state.user_identifier)
    current = now()
    return success_response({"items": [order_to_dict(o, current) for o in orders]})


@orders_router.get("/{order_id}")
async def my_order(request:Request, order_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    order = await get_order_by_pid(session, order_id, user_id=request.state.user_identifier)
    return success_response(order_to_dict(order, now()))


@orders_router.post("/{order_id}/cancel")
async def cancel_my_order(request:Request, order_id: uuid.UUID, payload: Optional[OrderCancelIn] = None,
                          session: AsyncSession = Depends(get_session)):

    reason = payload.reason if payload else None
    order = await cancel_order(session, order_id, CancelledBy.USER, reason=reason, user_id=request.state.user_identifier)
    await session.commit()

    notify_order_event("order_cancelled", order, cancelled_by=CancelledBy.USER.value)
    return success_response({"message": "order cancelled", "order": order_to_dict(order, now())})


# ---------------------------------------------------------------------------------------------- admin

@orders_admin_router.get("")
async def all_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session)):

    orders = await list_orders(session, status=order_status.value if order_status else None,
                               payment_status=payment_status.value if payment_status else None,
                               limit=limit, offset=offset)
    current = now()
    return success_response({"items": [order_to_dict(o, current) for o in orders], "limit": limit, "offset": offset})


@orders_admin_router.get("/{order_id}")
async def order_detail(order_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    order = await get_order_by_pid(session, order_id)
    return success_response(order_to_dict(order, now()))


@orders_admin_router.patch("/{order_id}/status")
async def update_order_status(request:Request, order_id: uuid.UUID, payload: OrderStatusUpdateIn,
                              session: AsyncSession = Depends(get_session)):

    order = await admin_update_status(session, order_id, payload.status,
                                      admin_notes=payload.admin_notes, reason=payload.reason)
    await session.commit()

    logger.info("admin.order.status", extra={"order_number": order.order_number, "status": order.status,
                                              "user_public_id": request.state.user_public_id})
    notify_order_event("order_status_changed", order)
    return success_response({"message": f"order {order.status}", "order": order_to_dict(order, now())})


@orders_admin_router.post("/{order_id}/approve")
async def approve_order(order_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    order = await admin_update_status(session, order_id, OrderStatus.CONFIRMED)
    await session.commit()
    notify_order_event("order_confirmed", order)
    return success_response({"message": "order confirmed", "order": order_to_dict(order, now())})


@orders_admin_router.post("/{order_id}/assign")
async def assign_order(order_id: uuid.UUID, payload: AssignDeliveryIn, session: AsyncSession = Depends(get_session)):
    order = await assign_delivery_person(session, order_id, payload.delivery_person_id, payload.delivery_notes)
    await session.commit()
    notify_order_event("order_assigned", order)
    return success_response({"message": "delivery person assigned", "order": order_to_dict(order, now())})
