import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from fastapi.params import Query
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.auth.constants import ADMIN_ROLE, BUYER_ROLE
from milkcart.auth.dependencies import require_roles
from milkcart.common.utils import now, success_response
from milkcart.db.dependencies import get_session
from milkcart.payments.constants import logger
from milkcart.payments.models import PaymentSessionCreateIn, PaymentSubmitIn, PaymentVerifyIn
from milkcart.payments.repository import get_payment_session_by_pid, list_payment_sessions
from milkcart.payments.services import create_session, describe_sessions, submit_payment, verify_payment
from milkcart.schema.full_schema import VerificationStatus

payments_router=APIRouter(dependencies=[require_roles(BUYER_ROLE, ADMIN_ROLE)])
payments_admin_router=APIRouter()


@payments_router.post("/sessions")
async def open_payment_session(request:Request, payload: PaymentSessionCreateIn,
                               session: AsyncSession = Depends(get_session)):

    logger.info("payment.session.attempt", extra={"user_public_id": request.state.user_public_id})
    ps = await create_session(session, request.state.user_identifier, payload)
    await session.commit()

    data = (await describe_sessions(session, [ps]))[0]
    return success_response({"message": "payment session created", "payment": data},
                            status_code=status.HTTP_201_CREATED)


@payments_router.get("/sessions/{payment_id}")
async def payment_session_status(request:Request, payment_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    ps = await get_payment_session_by_pid(session, payment_id, user_id=request.state.user_identifier)
    return success_response((await describe_sessions(session, [ps]))[0])


@payments_router.post("/sessions/{payment_id}/submit")
async def submit_payment_details(request:Request, payment_id: uuid.UUID, payload: PaymentSubmitIn,
                                 session: AsyncSession = Depends(get_session)):

    ps = await submit_payment(session, payment_id, request.state.user_identifier, payload)
    await session.commit()

    data = (await describe_sessions(session, [ps]))[0]
    return success_response({"message": "payment submitted for verification", "payment": data})


@payments_router.get("/history")
async def payment_history(request:Request, limit: int = Query(20, ge=1, le=100), offset: int = Query(0, ge=0),
                          session: AsyncSession = Depends(get_session)):
    sessions = await list_payment_sessions(session, now(), user_id=request.state.user_identifier,
                                           limit=limit, offset=offset)
    return success_response({"items": await describe_sessions(session, sessions), "limit": limit, "offset": offset})


# ---------------------------------------------------------------------------------------------- admin

@payments_admin_router.get("")
async def all_payment_sessions(
    verification_status: Optional[VerificationStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session)):

    sessions = await list_payment_sessions(session, now(),
                                           status=verification_status.value if verification_status else None,
                                           limit=limit, offset=offset)
    return success_response({"items": await describe_sessions(session, sessions), "limit": limit, "offset": offset})


@payments_admin_router.get("/pending")
async def pending_verifications(limit: int = Query(50, ge=1, le=200), offset: int = Query(0, ge=0),
                                session: AsyncSession = Depends(get_session)):
    sessions = await list_payment_sessions(session, now(), status=VerificationStatus.SUBMITTED.value,
                                           limit=limit, offset=offset)
    return success_response({"items": await describe_sessions(session, sessions), "limit": limit, "offset": offset})


@payments_admin_router.post("/{payment_id}/verify")
async def decide_payment(request:Request, payment_id: uuid.UUID, payload: PaymentVerifyIn,
                         session: AsyncSession = Depends(get_session)):

    ps = await verify_payment(session, payment_id, request.state.user_identifier, payload)
    await session.commit()

    logger.info("admin.payment.decision", extra={"payment_public_id": str(ps.public_id),
                                                  "decision": payload.decision,
                                                  "user_public_id": request.state.user_public_id})
    data = (await describe_sessions(session, [ps]))[0]
    return success_response({"message": f"payment {ps.verification_status}", "payment": data})
