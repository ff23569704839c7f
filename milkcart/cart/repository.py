from typing import List, Optional, Tuple
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from milkcart.common.custom_exceptions import OutOfStockError
from milkcart.config.store_config import store_settings
from milkcart.schema.full_schema import Cart, CartItem, Product


async def get_cart_id(session, user_id: int) -> Optional[int]:
    res = await session.execute(select(Cart.id).where(Cart.user_id == user_id))
    return res.scalar_one_or_none()


async def get_or_create_cart(session, user_id: int) -> int:
    cart_id = await get_cart_id(session, user_id)
    if cart_id:
        return cart_id

    cart = Cart(user_id=user_id)
    session.add(cart)
    try:
        await session.commit()
        return cart.id
    except IntegrityError:
        # concurrent first add for the same user
        await session.rollback()
        return await get_cart_id(session, user_id)


async def get_cart_lines(session, user_id: int) -> List[Tuple[CartItem, Product]]:
    stmt = (
        select(CartItem, Product)
        .join(Cart, Cart.id == CartItem.cart_id)
        .join(Product, Product.id == CartItem.product_id)
        .where(Cart.user_id == user_id)
        .order_by(CartItem.id)
    )
    res = await session.execute(stmt)
    return [(row[0], row[1]) for row in res.all()]


async def _get_line(session, cart_id: int, product_id: int) -> Optional[CartItem]:
    stmt = (
        select(CartItem)
        .where(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
        .with_for_update()
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


def _ensure_stock(product: Product, quantity: int) -> None:
    if quantity > product.stock_qty:
        raise OutOfStockError(
            f"Only {product.stock_qty} left for {product.name}",
            details={"product_id": str(product.public_id), "requested": quantity, "available": product.stock_qty},
        )


async def add_item_to_cart(session, cart_id: int, product: Product, quantity: int) -> Tuple[CartItem, bool]:
    line = await _get_line(session, cart_id, product.id)

    if line:
        new_qty = min(line.quantity + quantity, store_settings.MAX_ITEM_QTY)
        _ensure_stock(product, new_qty)
        line.quantity = new_qty
        session.add(line)
        await session.flush()
        return line, False

    _ensure_stock(product, quantity)
    line = CartItem(cart_id=cart_id, product_id=product.id, quantity=quantity)
    session.add(line)
    await session.flush()
    return line, True


async def set_item_quantity(session, cart_id: int, product: Product, quantity: int) -> Optional[CartItem]:
    line = await _get_line(session, cart_id, product.id)
    if quantity == 0:
        if line:
            await session.delete(line)
            await session.flush()
        return None

    _ensure_stock(product, quantity)
    if line is None:
        line = CartItem(cart_id=cart_id, product_id=product.id, quantity=quantity)
    else:
        line.quantity = quantity
    session.add(line)
    await session.flush()
    return line


async def clear_cart(session, user_id: int) -> None:
    cart_id = await get_cart_id(session, user_id)
    if cart_id:
        await session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
