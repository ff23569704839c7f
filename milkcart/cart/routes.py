import uuid
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.auth.constants import ADMIN_ROLE, BUYER_ROLE
from milkcart.auth.dependencies import require_roles

from milkcart.cart.models import CartItemInput, CartItemQuantityIn
from milkcart.cart.repository import add_item_to_cart, clear_cart, get_cart_lines, get_or_create_cart, set_item_quantity
from milkcart.common.utils import success_response
from milkcart.db.dependencies import get_session
from milkcart.orders.utils import compute_order_totals
from milkcart.products.repository import find_product_by_pid

carts_router=APIRouter(dependencies=[require_roles(BUYER_ROLE, ADMIN_ROLE)])


async def _cart_view(session, user_id):
    lines = await get_cart_lines(session, user_id)
    items = []
    for line, product in lines:
        items.append({
            "product_id": str(product.public_id),
            "name": product.name,
            "unit": product.unit,
            "unit_price": product.effective_price,
            "quantity": line.quantity,
            "line_total": product.effective_price * line.quantity,
            "in_stock": product.is_active and product.stock_qty >= line.quantity,
        })
    summary = compute_order_totals(items) if items else None
    return {"items": items, "summary": summary}


@carts_router.get("")
async def get_cart(request:Request, session:AsyncSession=Depends(get_session)):
    user_id = request.state.user_identifier
    return success_response(await _cart_view(session, user_id))


@carts_router.post("/items")
async def add_to_cart(request:Request, payload: CartItemInput, session:AsyncSession=Depends(get_session)):
    user_id = request.state.user_identifier

    product = await find_product_by_pid(session, payload.product_id)
    cart_id = await get_or_create_cart(session, user_id)

    line, created = await add_item_to_cart(session, cart_id, product, payload.quantity)
    await session.commit()

    resp = {
        "item": {"product_id": str(product.public_id), "quantity": line.quantity, "created": created},
        "cart": await _cart_view(session, user_id),
    }
    return success_response(resp, status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@carts_router.patch("/items/{product_public_id}")
async def update_cart_item(request:Request, product_public_id: uuid.UUID, payload: CartItemQuantityIn,
                           session:AsyncSession=Depends(get_session)):
    user_id = request.state.user_identifier

    product = await find_product_by_pid(session, product_public_id, active_only=False)
    cart_id = await get_or_create_cart(session, user_id)

    await set_item_quantity(session, cart_id, product, payload.quantity)
    await session.commit()
    return success_response(await _cart_view(session, user_id))


@carts_router.delete("/items/{product_public_id}")
async def remove_cart_item(request:Request, product_public_id: uuid.UUID, session:AsyncSession=Depends(get_session)):
    user_id = request.state.user_identifier

    product = await find_product_by_pid(session, product_public_id, active_only=False)
    cart_id = await get_or_create_cart(session, user_id)

    await set_item_quantity(session, cart_id, product, 0)
    await session.commit()
    return success_response(await _cart_view(session, user_id))


@carts_router.delete("")
async def empty_cart(request:Request, session:AsyncSession=Depends(get_session)):
    user_id = request.state.user_identifier
    await clear_cart(session, user_id)
    await session.commit()
    return success_response({"items": [], "summary": None})
