import uuid
from collections import OrderedDict
from typing import Optional

from milkcart.cart.repository import clear_cart, get_cart_lines
from milkcart.common.custom_exceptions import (
    AuthorizationError, IllegalTransitionError, OutOfStockError, ValidationError,
)
from milkcart.common.utils import now
from milkcart.config.store_config import store_settings
from milkcart.delivery.repository import get_delivery_person_by_pid
from milkcart.delivery.services import standing_delivery_person, works_shift
from milkcart.delivery.slots import validate_delivery_slot
from milkcart.orders.constants import logger
from milkcart.orders.models import OrderCreateIn
from milkcart.orders.repository import attach_delivery_person, get_order_by_pid, increment_deliveries, transition_order
from milkcart.orders.state import ORDER_TRANSITIONS, can_mark_delivered, cancellation_block_reason
from milkcart.orders.utils import compute_order_totals, generate_order_number
from milkcart.payments.repository import withdraw_open_session
from milkcart.products.repository import decrement_stock, fetch_products_by_pids, restore_stock
from milkcart.schema.full_schema import (
    CancelledBy, OrderItem, Orders, OrderStatus, PaymentMethod, PaymentStatus,
)


def notify_order_event(event: str, order: Orders, **fields) -> None:
    """Best-effort side channel ; never fails the request."""
    try:
        logger.info(f"notify.{event}", extra={
            "order_number": order.order_number,
            "order_public_id": str(order.public_id),
            "status": order.status,
            **fields,
        })
    except Exception:
        logger.warning("notify.failed", extra={"event": event}, exc_info=True)


async def apply_standing_assignment(session, order: Orders, current) -> bool:
    """Hand an unassigned order to the buyer's standing delivery person, if they can take it."""
    if order.delivery_person_id is not None:
        return False

    person = await standing_delivery_person(session, order.user_id, order.delivery_shift)
    if person is None:
        return False
    if not await attach_delivery_person(session, order.id, person.id, current):
        return False

    await session.refresh(order)
    logger.info("order.assign.standing", extra={"order_number": order.order_number,
                                                 "delivery_person_public_id": str(person.public_id)})
    return True


async def _requested_lines(session, user_id: int, payload: OrderCreateIn) -> "OrderedDict[uuid.UUID, int]":
    requested: "OrderedDict[uuid.UUID, int]" = OrderedDict()

    if payload.items is not None:
        for it in payload.items:
            requested[it.product_id] = requested.get(it.product_id, 0) + it.quantity
    else:
        for line, product in await get_cart_lines(session, user_id):
            requested[product.public_id] = requested.get(product.public_id, 0) + line.quantity

    if not requested:
        raise ValidationError("Order must contain at least one item")
    return requested


async def create_order(session, user_id: int, payload: OrderCreateIn) -> Orders:
    current = now()

    valid, reason = validate_delivery_slot(payload.delivery_date, payload.delivery_shift.value, current,
                                           store_settings.SLOT_LOOKAHEAD_DAYS)
    if not valid:
        logger.warning("order.create.slot_unavailable", extra={
            "delivery_date": payload.delivery_date.isoformat(),
            "delivery_shift": payload.delivery_shift.value,
            "reason": reason,
        })
        raise ValidationError(reason, details={"delivery_date": payload.delivery_date.isoformat(),
                                               "delivery_shift": payload.delivery_shift.value})

    requested = await _requested_lines(session, user_id, payload)
    products = await fetch_products_by_pids(session, requested.keys())

    lines = []
    for product_pid, quantity in requested.items():
        product = products.get(product_pid)
        if product is None or not product.is_active:
            raise ValidationError("Product is not available", details={"product_id": str(product_pid)})
        if quantity > store_settings.MAX_ITEM_QTY:
            raise ValidationError(f"Quantity cannot exceed {store_settings.MAX_ITEM_QTY}",
                                  details={"product_id": str(product_pid)})
        lines.append({
            "product": product,
            "unit_price": product.effective_price,
            "quantity": quantity,
        })

    # fixed lock order across concurrent checkouts
    for line in sorted(lines, key=lambda ln: ln["product"].id):
        product = line["product"]
        if not await decrement_stock(session, product.id, line["quantity"]):
            details = {"product_id": str(product.public_id), "requested": line["quantity"]}
            message = f"Insufficient stock for {product.name}"
            # undo decrements already applied for earlier lines
            await session.rollback()
            logger.warning("order.create.out_of_stock", extra=details)
            raise OutOfStockError(message, details=details)

    totals = compute_order_totals(lines)

    order = Orders(
        order_number=generate_order_number(),
        user_id=user_id,
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        payment_method=payload.payment_method.value,
        shipping_address=payload.shipping_address.model_dump(),
        delivery_date=payload.delivery_date,
        delivery_shift=payload.delivery_shift.value,
        customer_notes=payload.customer_notes,
        created_at=current,
        **totals,
    )
    order.items = [
        OrderItem(
            product_id=line["product"].id,
            product_public_id=line["product"].public_id,
            product_name=line["product"].name,
            unit_price=line["unit_price"],
            quantity=line["quantity"],
            line_total=line["unit_price"] * line["quantity"],
        )
        for line in lines
    ]
    session.add(order)
    await session.flush()

    if payload.items is None:
        await clear_cart(session, user_id)

    await apply_standing_assignment(session, order, current)

    logger.info("order.create.success", extra={
        "order_number": order.order_number,
        "total_amount": order.total_amount,
        "items": len(lines),
    })
    return order


async def cancel_order(session, order_pid: uuid.UUID, actor: CancelledBy, reason: Optional[str] = None,
                       user_id: Optional[int] = None) -> Orders:
    """Cancel within the shift's cutoff. Buyers may only cancel their own orders."""
    owner_filter = user_id if actor == CancelledBy.USER else None
    order = await get_order_by_pid(session, order_pid, user_id=owner_filter)

    current = now()
    block = cancellation_block_reason(order.status, order.delivery_date, order.delivery_shift, current)
    if block:
        logger.warning("order.cancel.rejected", extra={"order_number": order.order_number, "reason": block})
        raise IllegalTransitionError(block, details={"status": order.status})

    values = {
        "status": OrderStatus.CANCELLED.value,
        "cancelled_at": current,
        "cancelled_by": actor.value,
        "cancellation_reason": reason or ("Cancelled by customer" if actor == CancelledBy.USER else "Cancelled by admin"),
        "updated_at": current,
    }
    open_session_id = None
    if order.payment_status in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value):
        # nothing submitted yet, free the order from any open session
        open_session_id = order.payment_session_id
        values["payment_session_id"] = None
        values["claim_expires_at"] = None

    applied = await transition_order(session, order.id, order.status, values)
    if not applied:
        raise IllegalTransitionError("Order status changed concurrently, retry", details={"status": order.status})

    if open_session_id is not None:
        # its amount and QR still include this order, the buyer has to open a fresh one
        await withdraw_open_session(session, open_session_id, current,
                                    f"Withdrawn: order {order.order_number} was cancelled")

    await restore_stock(session, [(it.product_id, it.quantity) for it in order.items])
    await session.refresh(order)

    logger.info("order.cancel.success", extra={"order_number": order.order_number, "cancelled_by": actor.value})
    return order


async def admin_update_status(session, order_pid: uuid.UUID, new_status: OrderStatus,
                              admin_notes: Optional[str] = None, reason: Optional[str] = None) -> Orders:
    if new_status == OrderStatus.CANCELLED:
        order = await cancel_order(session, order_pid, CancelledBy.ADMIN, reason=reason)
        if admin_notes:
            order.admin_notes = admin_notes
            await session.flush()
        return order

    order = await get_order_by_pid(session, order_pid)
    ORDER_TRANSITIONS.ensure(order.status, new_status.value, details={"order_id": str(order.public_id)})

    current = now()
    values = {"status": new_status.value, "updated_at": current}
    if admin_notes is not None:
        values["admin_notes"] = admin_notes
    if new_status == OrderStatus.CONFIRMED:
        values["confirmed_at"] = current
    if new_status == OrderStatus.DELIVERED:
        values["delivered_at"] = current
        if order.payment_method == PaymentMethod.COD.value and order.payment_status != PaymentStatus.PAID.value:
            # cash collected at the door
            values["payment_status"] = PaymentStatus.PAID.value
            values["paid_at"] = current

    if not await transition_order(session, order.id, order.status, values):
        raise IllegalTransitionError("Order status changed concurrently, retry", details={"status": order.status})

    await session.refresh(order)
    if new_status == OrderStatus.CONFIRMED:
        await apply_standing_assignment(session, order, current)

    logger.info("order.status.updated", extra={"order_number": order.order_number, "status": order.status})
    return order


async def assign_delivery_person(session, order_pid: uuid.UUID, person_pid: uuid.UUID,
                                 delivery_notes: Optional[str] = None) -> Orders:
    order = await get_order_by_pid(session, order_pid)
    if order.status != OrderStatus.CONFIRMED.value:
        raise ValidationError("Only confirmed orders can be assigned", details={"status": order.status})

    person = await get_delivery_person_by_pid(session, person_pid)
    if not person.can_login:
        raise ValidationError("Delivery person is not approved or is suspended",
                              details={"approval_status": person.approval_status, "is_suspended": person.is_suspended})

    if not works_shift(person, order.delivery_shift):
        raise ValidationError(
            f"Delivery person works the {person.delivery_shift} shift, order is for {order.delivery_shift}",
        )

    current = now()
    values = {"delivery_person_id": person.id, "assigned_at": current, "updated_at": current}
    if delivery_notes is not None:
        values["delivery_notes"] = delivery_notes

    if not await transition_order(session, order.id, OrderStatus.CONFIRMED.value, values):
        raise IllegalTransitionError("Order status changed concurrently, retry")

    await session.refresh(order)
    logger.info("order.assign.success", extra={"order_number": order.order_number,
                                                "delivery_person_public_id": str(person.public_id)})
    return order


async def mark_delivered(session, order_pid: uuid.UUID, delivery_person_id: int,
                         delivery_notes: Optional[str] = None) -> Orders:
    order = await get_order_by_pid(session, order_pid)

    if order.delivery_person_id != delivery_person_id:
        raise AuthorizationError("Order is not assigned to you")

    ORDER_TRANSITIONS.ensure(order.status, OrderStatus.DELIVERED.value)

    current = now()
    allowed, reason = can_mark_delivered(order.delivery_date, order.delivery_shift, current)
    if not allowed:
        raise ValidationError(reason)

    values = {"status": OrderStatus.DELIVERED.value, "delivered_at": current, "updated_at": current}
    if delivery_notes is not None:
        values["delivery_notes"] = delivery_notes
    if order.payment_method == PaymentMethod.COD.value and order.payment_status != PaymentStatus.PAID.value:
        values["payment_status"] = PaymentStatus.PAID.value
        values["paid_at"] = current

    if not await transition_order(session, order.id, OrderStatus.CONFIRMED.value, values):
        raise IllegalTransitionError("Order status changed concurrently, retry")

    await increment_deliveries(session, delivery_person_id)
    await session.refresh(order)

    logger.info("order.delivered", extra={"order_number": order.order_number})
    return order
