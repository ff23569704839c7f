import random
import time
from typing import Any, Dict, List

from milkcart.common.utils import iso
from milkcart.config.store_config import store_settings
from milkcart.orders.constants import ORDER_NUMBER_PREFIX
from milkcart.orders.state import can_be_cancelled


def compute_shipping_fee(subtotal: int) -> int:
    if subtotal >= store_settings.FREE_DELIVERY_THRESHOLD:
        return 0
    return store_settings.DELIVERY_FEE


def compute_order_totals(items: List[Dict[str, Any]], discount: int = 0) -> Dict[str, int]:
    """items carry ``unit_price`` and ``quantity`` ; amounts are whole rupees."""
    subtotal = sum(int(it["unit_price"]) * int(it["quantity"]) for it in items)
    shipping_fee = compute_shipping_fee(subtotal)
    tax = int(round(subtotal * store_settings.TAX_RATE))
    total_amount = subtotal + shipping_fee + tax - discount

    return {
        "subtotal": subtotal,
        "shipping_fee": shipping_fee,
        "tax": tax,
        "discount": discount,
        "total_amount": total_amount,
    }


def totals_reconcile(order) -> bool:
    return order.total_amount == order.subtotal + order.shipping_fee + order.tax - order.discount


def generate_order_number() -> str:
    return f"{ORDER_NUMBER_PREFIX}-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def order_item_to_dict(item) -> Dict[str, Any]:
    return {
        "product_id": str(item.product_public_id) if item.product_public_id else None,
        "name": item.product_name,
        "price": item.unit_price,
        "quantity": item.quantity,
        "line_total": item.line_total,
    }


def order_to_dict(order, now=None) -> Dict[str, Any]:
    out = {
        "public_id": str(order.public_id),
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "items": [order_item_to_dict(it) for it in order.items],
        "shipping_address": order.shipping_address,
        "delivery_date": order.delivery_date.isoformat(),
        "delivery_shift": order.delivery_shift,
        "subtotal": order.subtotal,
        "shipping_fee": order.shipping_fee,
        "tax": order.tax,
        "discount": order.discount,
        "total_amount": order.total_amount,
        "customer_notes": order.customer_notes,
        "admin_notes": order.admin_notes,
        "cancellation_reason": order.cancellation_reason,
        "cancelled_by": order.cancelled_by,
        "delivery_notes": order.delivery_notes,
        "assigned": order.delivery_person_id is not None,
        "created_at": iso(order.created_at),
        "confirmed_at": iso(order.confirmed_at),
        "delivered_at": iso(order.delivered_at),
        "cancelled_at": iso(order.cancelled_at),
        "paid_at": iso(order.paid_at),
    }
    if now is not None:
        out["can_be_cancelled"] = can_be_cancelled(order.status, order.delivery_date, order.delivery_shift, now)
    return out
