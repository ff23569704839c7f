import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from fastapi.params import Query
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.auth.constants import ADMIN_ROLE, BUYER_ROLE
from milkcart.auth.dependencies import require_roles
from milkcart.common.custom_exceptions import NotFoundError
from milkcart.common.utils import now, store_today, success_response
from milkcart.db.dependencies import get_session
from milkcart.payments.models import PaymentVerifyIn
from milkcart.payments.repository import find_submitted_session_for_subscription
from milkcart.payments.services import describe_sessions, verify_payment
from milkcart.refunds.utils import refund_to_dict
from milkcart.schema.full_schema import MilkType, SubscriptionStatus
from milkcart.subscriptions.constants import ACTOR_ADMIN, logger
from milkcart.subscriptions.models import (
    CancelSubscriptionIn, CancellationDecisionIn, PlanCreateIn, PlanUpdateIn, SubscribeIn, SubscriptionActionIn,
    SubscriptionPaymentDecisionIn,
)
from milkcart.subscriptions.repository import (
    get_plan_by_pid, get_plans_by_ids, get_subscription_by_pid, insert_plan, list_deliveries_due, list_history,
    list_plans, list_subscriptions, update_plan,
)
from milkcart.subscriptions.services import (
    cancel_subscription, complete_delivery, expire_overdue_subscriptions, pause_subscription,
    resolve_cancellation, resume_subscription, skip_delivery, subscribe,
)
from milkcart.subscriptions.utils import history_to_list, plan_to_dict, subscription_to_dict

plans_public_router=APIRouter()
subscriptions_router=APIRouter(dependencies=[require_roles(BUYER_ROLE, ADMIN_ROLE)])
subscriptions_admin_router=APIRouter()


async def _with_plans(session, subs):
    plans = await get_plans_by_ids(session, [s.plan_id for s in subs])
    return [subscription_to_dict(s, plans.get(s.plan_id)) for s in subs]


@plans_public_router.get("")
async def get_plans(milk_type: Optional[MilkType] = Query(None), session: AsyncSession = Depends(get_session)):
    plans = await list_plans(session, milk_type=milk_type.value if milk_type else None)
    return success_response({"items": [plan_to_dict(p) for p in plans]})


@plans_public_router.get("/{plan_id}")
async def get_plan(plan_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    plan = await get_plan_by_pid(session, plan_id)
    return success_response(plan_to_dict(plan))


# ---------------------------------------------------------------------------------------------- buyer

@subscriptions_router.post("")
async def create_subscription(request:Request, payload: SubscribeIn, session: AsyncSession = Depends(get_session)):

    logger.info("subscription.create.attempt", extra={"user_public_id": request.state.user_public_id})
    sub = await subscribe(session, request.state.user_identifier, payload)
    await session.commit()

    data = (await _with_plans(session, [sub]))[0]
    return success_response({"message": "subscription created", "subscription": data},
                            status_code=status.HTTP_201_CREATED)


@subscriptions_router.get("")
async def my_subscriptions(request:Request,
    sub_status: Optional[SubscriptionStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session)):

    user_id = request.state.user_identifier
    if await expire_overdue_subscriptions(session, user_id=user_id):
        await session.commit()

    subs = await list_subscriptions(session, user_id=user_id, status=sub_status.value if sub_status else None,
                                    limit=limit, offset=offset)
    return success_response({"items": await _with_plans(session, subs), "limit": limit, "offset": offset})


@subscriptions_router.get("/{subscription_id}")
async def my_subscription(request:Request, subscription_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    sub = await get_subscription_by_pid(session, subscription_id, user_id=request.state.user_identifier)
    data = (await _with_plans(session, [sub]))[0]
    data["history"] = history_to_list(await list_history(session, sub.id))
    return success_response(data)


@subscriptions_router.post("/{subscription_id}/pause")
async def pause_my_subscription(request:Request, subscription_id: uuid.UUID,
                                payload: Optional[SubscriptionActionIn] = None,
                                session: AsyncSession = Depends(get_session)):
    sub = await pause_subscription(session, subscription_id, request.state.user_identifier,
                                   reason=payload.reason if payload else None)
    await session.commit()
    return success_response({"message": "subscription paused", "subscription": (await _with_plans(session, [sub]))[0]})


@subscriptions_router.post("/{subscription_id}/resume")
async def resume_my_subscription(request:Request, subscription_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    sub = await resume_subscription(session, subscription_id, request.state.user_identifier)
    await session.commit()
    return success_response({"message": "subscription resumed", "subscription": (await _with_plans(session, [sub]))[0]})


@subscriptions_router.post("/{subscription_id}/skip")
async def skip_next_delivery(request:Request, subscription_id: uuid.UUID,
                             payload: Optional[SubscriptionActionIn] = None,
                             session: AsyncSession = Depends(get_session)):
    sub = await skip_delivery(session, subscription_id, request.state.user_identifier,
                              reason=payload.reason if payload else None)
    await session.commit()
    return success_response({"message": "delivery skipped", "subscription": (await _with_plans(session, [sub]))[0]})


@subscriptions_router.post("/{subscription_id}/cancel")
async def cancel_my_subscription(request:Request, subscription_id: uuid.UUID, payload: CancelSubscriptionIn,
                                 session: AsyncSession = Depends(get_session)):

    result = await cancel_subscription(session, subscription_id, request.state.user_identifier, payload)
    await session.commit()

    sub = result["subscription"]
    refund = result["refund_request"]
    data = {
        "message": "subscription cancelled" if sub.status == SubscriptionStatus.CANCELLED.value else "cancellation requested",
        "subscription": (await _with_plans(session, [sub]))[0],
        "refund_request": refund_to_dict(refund, subscription_public_id=str(sub.public_id)) if refund else None,
    }
    return success_response(data)


# ---------------------------------------------------------------------------------------------- admin

@subscriptions_admin_router.post("/plans")
async def create_plan(payload: PlanCreateIn, session: AsyncSession = Depends(get_session)):
    plan = await insert_plan(session, {
        **payload.model_dump(exclude={"milk_type", "volume"}),
        "milk_type": payload.milk_type.value,
        "volume": payload.volume.value,
    })
    await session.commit()
    logger.info("plan.create.success", extra={"plan_public_id": str(plan.public_id), "name": plan.name})
    return success_response({"message": "plan created", "plan": plan_to_dict(plan)}, status_code=status.HTTP_201_CREATED)


@subscriptions_admin_router.get("/plans")
async def all_plans(session: AsyncSession = Depends(get_session)):
    plans = await list_plans(session, active_only=False)
    return success_response({"items": [plan_to_dict(p) for p in plans]})


@subscriptions_admin_router.patch("/plans/{plan_id}")
async def edit_plan(plan_id: uuid.UUID, payload: PlanUpdateIn, session: AsyncSession = Depends(get_session)):
    plan = await get_plan_by_pid(session, plan_id, active_only=False)
    values = payload.model_dump(exclude_unset=True)
    for key in ("milk_type", "volume"):
        if values.get(key) is not None:
            values[key] = values[key].value
    plan = await update_plan(session, plan, {**values, "updated_at": now()})
    await session.commit()
    return success_response({"message": "plan updated", "plan": plan_to_dict(plan)})


@subscriptions_admin_router.delete("/plans/{plan_id}")
async def deactivate_plan(plan_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    plan = await get_plan_by_pid(session, plan_id, active_only=False)
    plan = await update_plan(session, plan, {"is_active": False, "updated_at": now()})
    await session.commit()
    logger.info("plan.deactivated", extra={"plan_public_id": str(plan.public_id)})
    return success_response({"message": "plan deactivated", "plan": plan_to_dict(plan)})


@subscriptions_admin_router.get("")
async def all_subscriptions(
    sub_status: Optional[SubscriptionStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session)):

    if await expire_overdue_subscriptions(session):
        await session.commit()

    subs = await list_subscriptions(session, status=sub_status.value if sub_status else None, limit=limit, offset=offset)
    return success_response({"items": await _with_plans(session, subs), "limit": limit, "offset": offset})


@subscriptions_admin_router.get("/pending")
async def pending_subscriptions(session: AsyncSession = Depends(get_session)):
    subs = await list_subscriptions(session, status=SubscriptionStatus.PROCESSING.value, limit=200)
    return success_response({"items": await _with_plans(session, subs)})


@subscriptions_admin_router.get("/deliveries/today")
async def deliveries_due_today(session: AsyncSession = Depends(get_session)):
    if await expire_overdue_subscriptions(session):
        await session.commit()
    subs = await list_deliveries_due(session, store_today())
    return success_response({"date": store_today().isoformat(), "items": await _with_plans(session, subs)})


@subscriptions_admin_router.post("/{subscription_id}/deliveries/complete")
async def mark_subscription_delivery(subscription_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    sub = await complete_delivery(session, subscription_id, ACTOR_ADMIN)
    await session.commit()
    return success_response({"message": "delivery recorded", "subscription": (await _with_plans(session, [sub]))[0]})


async def _decide_subscription_payment(request, session, subscription_id, decision, notes):
    sub = await get_subscription_by_pid(session, subscription_id)
    ps = await find_submitted_session_for_subscription(session, sub.id)
    if ps is None:
        raise NotFoundError("No submitted payment for this subscription", details={"subscription_id": str(subscription_id)})

    ps = await verify_payment(session, ps.public_id, request.state.user_identifier,
                              PaymentVerifyIn(decision=decision, notes=notes))
    await session.commit()

    await session.refresh(sub)
    return {
        "subscription": (await _with_plans(session, [sub]))[0],
        "payment": (await describe_sessions(session, [ps]))[0],
    }


@subscriptions_admin_router.post("/{subscription_id}/payment/verify")
async def verify_subscription_payment(request:Request, subscription_id: uuid.UUID,
                                      payload: Optional[SubscriptionPaymentDecisionIn] = None,
                                      session: AsyncSession = Depends(get_session)):
    data = await _decide_subscription_payment(request, session, subscription_id, "verify",
                                              payload.notes if payload else None)
    return success_response({"message": "subscription payment verified", **data})


@subscriptions_admin_router.post("/{subscription_id}/payment/reject")
async def reject_subscription_payment(request:Request, subscription_id: uuid.UUID,
                                      payload: Optional[SubscriptionPaymentDecisionIn] = None,
                                      session: AsyncSession = Depends(get_session)):
    data = await _decide_subscription_payment(request, session, subscription_id, "reject",
                                              payload.notes if payload else None)
    return success_response({"message": "subscription payment rejected", **data})


@subscriptions_admin_router.post("/{subscription_id}/cancellation")
async def decide_cancellation(subscription_id: uuid.UUID, payload: CancellationDecisionIn,
                              session: AsyncSession = Depends(get_session)):
    sub = await get_subscription_by_pid(session, subscription_id)
    sub = await resolve_cancellation(session, sub, payload.approve, ACTOR_ADMIN, reason=payload.reason)
    await session.commit()
    return success_response({"subscription": (await _with_plans(session, [sub]))[0]})
