import uuid
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.params import Query
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.common.utils import success_response
from milkcart.db.dependencies import get_session
from milkcart.products.constants import CURSOR_MAX_AGE_SECONDS, CURSOR_TTL_SECONDS, logger
from milkcart.products.models import ProductCreateIn, ProductUpdateIn
from milkcart.products.repository import fetch_prods, find_product_by_pid, insert_product, patch_product
from milkcart.products.utils import decode_cursor, encode_cursor, product_to_dict

prods_public_router=APIRouter()
prods_admin_router=APIRouter()


@prods_admin_router.post("")
async def create_product(request:Request, payload: ProductCreateIn, session: AsyncSession = Depends(get_session)):

    user_pid = request.state.user_public_id
    logger.info("product.create.attempt", extra={"user_public_id": user_pid})

    product = await insert_product(session, payload.model_dump())
    await session.commit()

    logger.info("product.create.success", extra={"product_id": str(product.public_id), "user_public_id": user_pid})

    return success_response({"message": "product created", "product": product_to_dict(product)}, status_code=status.HTTP_201_CREATED)


@prods_admin_router.patch("/{product_public_id}")
async def update_product(request:Request, payload: ProductUpdateIn, product_public_id: uuid.UUID,
                          session: AsyncSession = Depends(get_session)):

    product = await find_product_by_pid(session, product_public_id, active_only=False)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    new_price = updates.get("price", product.price)
    new_discount = updates.get("discount_price", product.discount_price)
    if new_discount is not None and new_discount > new_price:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="discount_price cannot exceed price")

    product = await patch_product(session, product, updates)
    await session.commit()

    logger.info("product.update.success", extra={"product_id": str(product.public_id), "fields": sorted(updates)})
    return success_response({"message": f"product {product.public_id} updated", "product": product_to_dict(product)})


@prods_public_router.get("")
async def get_products(
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[str] = Query(None, description="Opaque signed cursor token"),
    q: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = Query(None, max_length=64),
    session: AsyncSession = Depends(get_session)):

    cursor_vals = None
    if cursor:
        try:
            cursor_vals = decode_cursor(cursor, max_age=CURSOR_MAX_AGE_SECONDS)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    rows = await fetch_prods(session, cursor_vals, limit, category=category, q=q)

    has_more = len(rows) > limit
    page_rows = rows[:limit]

    next_cursor = None
    if has_more:
        last = page_rows[-1]
        next_cursor = encode_cursor(last.created_at, last.id, ttl_seconds=CURSOR_TTL_SECONDS)

    response = {"items": [product_to_dict(p) for p in page_rows], "next_cursor": next_cursor, "has_more": has_more}
    return success_response(response, status_code=status.HTTP_200_OK)


@prods_public_router.get("/{product_public_id}")
async def get_product_details(product_public_id: uuid.UUID, session: AsyncSession = Depends(get_session)):

    product = await find_product_by_pid(session, product_public_id)
    return success_response(product_to_dict(product), status_code=status.HTTP_200_OK)
