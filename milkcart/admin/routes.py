from datetime import date
from fastapi import APIRouter, Depends
from fastapi.params import Query
from sqlalchemy.ext.asyncio import AsyncSession
from milkcart.admin.services import build_report_summary
from milkcart.common.utils import now, success_response
from milkcart.db.dependencies import get_session
from milkcart.orders.repository import count_orders_by_status, list_orders
from milkcart.orders.utils import order_to_dict
from milkcart.payments.repository import list_payment_sessions
from milkcart.payments.services import describe_sessions
from milkcart.schema.full_schema import OrderStatus, SubscriptionStatus, VerificationStatus
from milkcart.subscriptions.repository import get_plans_by_ids, list_subscriptions
from milkcart.subscriptions.utils import subscription_to_dict

dashboard_admin_router=APIRouter()


@dashboard_admin_router.get("/dashboard")
async def verification_queue(limit: int = Query(20, ge=1, le=100), session: AsyncSession = Depends(get_session)):
    """Everything waiting on an admin: orders to approve, subscriptions and payments to verify."""
    current = now()

    orders = await list_orders(session, status=OrderStatus.PENDING.value, limit=limit)
    subs = await list_subscriptions(session, status=SubscriptionStatus.PROCESSING.value, limit=limit)
    payments = await list_payment_sessions(session, current, status=VerificationStatus.SUBMITTED.value, limit=limit)
    plans = await get_plans_by_ids(session, [s.plan_id for s in subs])

    return success_response({
        "pending_orders": [order_to_dict(o, current) for o in orders],
        "pending_subscriptions": [subscription_to_dict(s, plans.get(s.plan_id)) for s in subs],
        "pending_payments": await describe_sessions(session, payments),
        "order_counts": await count_orders_by_status(session),
    })


@dashboard_admin_router.get("/report-summary")
async def report_summary(start_date: date = Query(...), end_date: date = Query(...),
                         session: AsyncSession = Depends(get_session)):
    """Order volume, revenue and customers per store-local day, both ends inclusive."""
    return success_response(await build_report_summary(session, start_date, end_date))
