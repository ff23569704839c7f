import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from fastapi.params import Query
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.auth.constants import ADMIN_ROLE, BUYER_ROLE
from milkcart.auth.dependencies import require_roles
from milkcart.common.utils import success_response
from milkcart.db.dependencies import get_session
from milkcart.refunds.constants import logger
from milkcart.refunds.models import RefundRequestCreateIn, RefundStatusUpdateIn
from milkcart.refunds.repository import get_refund_by_pid, list_refunds
from milkcart.refunds.services import refund_targets, request_order_refund, update_refund_status
from milkcart.refunds.utils import refund_to_dict
from milkcart.schema.full_schema import RefundStatus

refunds_router=APIRouter(dependencies=[require_roles(BUYER_ROLE, ADMIN_ROLE)])
refunds_admin_router=APIRouter()


async def _serialize(session, refunds, reveal_details=False):
    targets = await refund_targets(session, refunds)
    return [
        refund_to_dict(r, targets[r.id]["subscription_public_id"], targets[r.id]["order_number"], reveal_details)
        for r in refunds
    ]


@refunds_router.post("")
async def request_refund(request:Request, payload: RefundRequestCreateIn, session: AsyncSession = Depends(get_session)):

    refund = await request_order_refund(session, request.state.user_identifier, payload)
    await session.commit()

    logger.info("refund.request.attempt", extra={"user_public_id": request.state.user_public_id})
    data = (await _serialize(session, [refund]))[0]
    return success_response({"message": "refund requested", "refund": data}, status_code=status.HTTP_201_CREATED)


@refunds_router.get("")
async def my_refunds(request:Request, limit: int = Query(20, ge=1, le=100), offset: int = Query(0, ge=0),
                     session: AsyncSession = Depends(get_session)):
    refunds = await list_refunds(session, user_id=request.state.user_identifier, limit=limit, offset=offset)
    return success_response({"items": await _serialize(session, refunds), "limit": limit, "offset": offset})


@refunds_router.get("/{refund_id}")
async def my_refund(request:Request, refund_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    refund = await get_refund_by_pid(session, refund_id, user_id=request.state.user_identifier)
    return success_response((await _serialize(session, [refund]))[0])


# ---------------------------------------------------------------------------------------------- admin

@refunds_admin_router.get("")
async def all_refunds(refund_status: Optional[RefundStatus] = Query(None, alias="status"),
                      limit: int = Query(50, ge=1, le=200), offset: int = Query(0, ge=0),
                      session: AsyncSession = Depends(get_session)):
    refunds = await list_refunds(session, status=refund_status.value if refund_status else None,
                                 limit=limit, offset=offset)
    return success_response({"items": await _serialize(session, refunds, reveal_details=True),
                             "limit": limit, "offset": offset})


@refunds_admin_router.get("/{refund_id}")
async def refund_detail(refund_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    refund = await get_refund_by_pid(session, refund_id)
    return success_response((await _serialize(session, [refund], reveal_details=True))[0])


@refunds_admin_router.patch("/{refund_id}/status")
async def change_refund_status(request:Request, refund_id: uuid.UUID, payload: RefundStatusUpdateIn,
                               session: AsyncSession = Depends(get_session)):

    refund = await update_refund_status(session, refund_id, request.state.user_identifier, payload)
    await session.commit()

    logger.info("admin.refund.status", extra={"refund_public_id": str(refund.public_id), "status": refund.status,
                                               "user_public_id": request.state.user_public_id})
    data = (await _serialize(session, [refund], reveal_details=True))[0]
    return success_response({"message": f"refund {refund.status}", "refund": data})
