from typing import Any, Dict, List, Optional
from milkcart.common.utils import iso
from milkcart.schema.full_schema import SubscriptionPlan, UserSubscription


def plan_to_dict(plan: SubscriptionPlan) -> Dict[str, Any]:
    return {
        "plan_id": str(plan.public_id),
        "name": plan.name,
        "milk_type": plan.milk_type,
        "volume": plan.volume,
        "duration_days": plan.duration_days,
        "price": plan.price,
        "daily_price": plan.daily_price,
        "discount": plan.discount,
        "original_price": plan.original_price,
        "features": plan.features or [],
        "description": plan.description,
        "popularity": plan.popularity,
        "is_active": plan.is_active,
    }


def subscription_to_dict(sub: UserSubscription, plan: Optional[SubscriptionPlan] = None) -> Dict[str, Any]:
    return {
        "subscription_id": str(sub.public_id),
        "plan": plan_to_dict(plan) if plan else None,
        "status": sub.status,
        "payment_status": sub.payment_status,
        "payment_method": sub.payment_method,
        "total_amount": sub.total_amount,
        "start_date": iso(sub.start_date),
        "end_date": iso(sub.end_date),
        "next_delivery_date": iso(sub.next_delivery_date),
        "total_deliveries": sub.total_deliveries,
        "completed_deliveries": sub.completed_deliveries,
        "skipped_deliveries": sub.skipped_deliveries,
        "remaining_deliveries": max(0, sub.total_deliveries - sub.completed_deliveries - sub.skipped_deliveries),
        "delivery_address": sub.delivery_address,
        "preferred_delivery_time": sub.preferred_delivery_time,
        "special_instructions": sub.special_instructions,
        "cancellation_reason": sub.cancellation_reason,
        "paid_at": iso(sub.paid_at),
        "created_at": iso(sub.created_at),
    }


def history_to_list(entries) -> List[Dict[str, Any]]:
    return [
        {
            "action": h.action,
            "from_status": h.from_status,
            "to_status": h.to_status,
            "actor": h.actor,
            "reason": h.reason,
            "at": iso(h.created_at),
        }
        for h in entries
    ]
