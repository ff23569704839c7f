import uuid
from typing import Dict, Iterable, List, Optional, Tuple
from datetime import datetime
from fastapi import HTTPException, status
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.products.constants import logger
from milkcart.schema.full_schema import Product


async def fetch_prods(session, cursor_vals: Optional[Tuple[datetime, int]], limit: int,
                      category: Optional[str] = None, q: Optional[str] = None) -> List[Product]:
    """Active products newest first, keyset paginated on (created_at, id). Returns limit+1 rows."""
    stmt = select(Product).where(Product.is_active.is_(True))

    if category:
        stmt = stmt.where(Product.category == category)
    if q:
        stmt = stmt.where(Product.name.ilike(f"%{q}%"))

    if cursor_vals:
        last_created_at, last_id = cursor_vals
        stmt = stmt.where(
            or_(
                Product.created_at < last_created_at,
                and_(Product.created_at == last_created_at, Product.id < last_id),
            )
        )

    stmt = stmt.order_by(Product.created_at.desc(), Product.id.desc()).limit(limit + 1)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def find_product_by_pid(session, product_pid: uuid.UUID, active_only: bool = True) -> Product:
    stmt = select(Product).where(Product.public_id == product_pid)
    if active_only:
        stmt = stmt.where(Product.is_active.is_(True))
    res = await session.execute(stmt)
    product = res.scalar_one_or_none()
    if not product:
        logger.warning("product.not_found", extra={"product_public_id": str(product_pid)})
        raise NotFoundError("Product not found", details={"product_id": str(product_pid)})
    return product


async def fetch_products_by_pids(session, product_pids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Product]:
    pids = list(product_pids)
    if not pids:
        return {}
    res = await session.execute(select(Product).where(Product.public_id.in_(pids)))
    return {p.public_id: p for p in res.scalars().all()}


async def insert_product(session, values: dict) -> Product:
    product = Product(**values)
    session.add(product)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product with this name already exists")
    return product


async def patch_product(session, product: Product, updates: dict) -> Product:
    for key, value in updates.items():
        setattr(product, key, value)
    session.add(product)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product with this name already exists")
    return product


# ------------------------------------------------------------------------------------------
# inventory: conditional updates only, never read-modify-write

async def decrement_stock(session, product_id: int, quantity: int) -> bool:
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.is_active.is_(True), Product.stock_qty >= quantity)
        .values(stock_qty=Product.stock_qty - quantity)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def restore_stock(session, lines: Iterable[Tuple[int, int]]) -> None:
    for product_id, quantity in sorted(lines):
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_qty=Product.stock_qty + quantity)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)
