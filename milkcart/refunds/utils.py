from typing import Any, Dict, Optional
from milkcart.common.state_machine import TransitionTable
from milkcart.common.utils import iso
from milkcart.schema.full_schema import RefundRequest, RefundStatus as R

REFUND_TRANSITIONS = TransitionTable("Refund request", {
    R.PENDING.value: {R.APPROVED.value, R.REJECTED.value},
    R.APPROVED.value: {R.PROCESSED.value, R.COMPLETED.value},
    R.PROCESSED.value: {R.COMPLETED.value},
    R.REJECTED.value: set(),
    R.COMPLETED.value: set(),
})

# statuses that commit the store to paying the refund
ACCEPTED_STATUSES = (R.APPROVED.value, R.PROCESSED.value, R.COMPLETED.value)


def mask_account_number(number: Optional[str]) -> Optional[str]:
    if not number:
        return number
    return "*" * max(0, len(number) - 4) + number[-4:]


def refund_to_dict(refund: RefundRequest, subscription_public_id: Optional[str] = None,
                   order_number: Optional[str] = None, reveal_details: bool = False) -> Dict[str, Any]:
    details = dict(refund.refund_details or {})
    if not reveal_details and details.get("account_number"):
        details["account_number"] = mask_account_number(details["account_number"])
    return {
        "refund_id": str(refund.public_id),
        "subscription_id": subscription_public_id,
        "order_number": order_number,
        "original_amount": refund.original_amount,
        "refund_amount": refund.refund_amount,
        "days_used": refund.days_used,
        "days_remaining": refund.days_remaining,
        "reason": refund.reason,
        "refund_method": refund.refund_method,
        "refund_details": details,
        "status": refund.status,
        "admin_notes": refund.admin_notes,
        "refund_transaction_id": refund.refund_transaction_id,
        "processed_at": iso(refund.processed_at),
        "refund_date": iso(refund.refund_date),
        "created_at": iso(refund.created_at),
    }
