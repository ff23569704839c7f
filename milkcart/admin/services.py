from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict

from milkcart.admin.constants import REPORT_MAX_DAYS, logger
from milkcart.common.custom_exceptions import ValidationError
from milkcart.common.utils import store_tz, to_store_time
from milkcart.orders.repository import orders_created_between
from milkcart.schema.full_schema import OrderStatus


def local_day_bounds(start_date: date, end_date: date):
    """Start of ``start_date`` and start of the day after ``end_date`` in store time, so the end day is inclusive."""
    tz = store_tz()
    return (
        datetime.combine(start_date, time.min, tzinfo=tz),
        datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz),
    )


async def build_report_summary(session, start_date: date, end_date: date) -> Dict[str, Any]:
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date",
                              details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()})
    span = (end_date - start_date).days + 1
    if span > REPORT_MAX_DAYS:
        raise ValidationError(f"Report range cannot exceed {REPORT_MAX_DAYS} days", details={"days": span})

    start, end = local_day_bounds(start_date, end_date)
    rows = await orders_created_between(session, start, end)

    trend: "OrderedDict[date, Dict[str, int]]" = OrderedDict(
        (start_date + timedelta(days=i), {"revenue": 0, "orders": 0}) for i in range(span)
    )
    customers = set()
    cancelled = 0
    revenue = 0
    for user_id, status, total_amount, created_at in rows:
        customers.add(user_id)
        if status == OrderStatus.CANCELLED.value:
            cancelled += 1
            continue
        revenue += total_amount
        day = trend.get(to_store_time(created_at).date())
        if day is not None:
            day["revenue"] += total_amount
            day["orders"] += 1

    logger.info("report.summary", extra={"start_date": start_date.isoformat(), "end_date": end_date.isoformat(),
                                         "orders": len(rows)})
    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "total_orders": len(rows),
        "cancelled_orders": cancelled,
        "total_revenue": revenue,
        "total_customers": len(customers),
        "revenue_trend": [{"date": d.isoformat(), **v} for d, v in trend.items()],
    }
