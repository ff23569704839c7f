import secrets
import time
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode

from milkcart.common.state_machine import TransitionTable
from milkcart.common.utils import iso
from milkcart.payments.constants import REFERENCE_PREFIX, UPI_ID_PATTERN
from milkcart.schema.full_schema import VerificationStatus

PAYMENT_SESSION_TRANSITIONS = TransitionTable("Payment session", {
    VerificationStatus.AWAITING_SUBMISSION.value: {VerificationStatus.SUBMITTED.value, VerificationStatus.CANCELLED.value},
    VerificationStatus.SUBMITTED.value: {VerificationStatus.VERIFIED.value, VerificationStatus.REJECTED.value},
    VerificationStatus.VERIFIED.value: set(),
    VerificationStatus.REJECTED.value: set(),
    VerificationStatus.CANCELLED.value: set(),
})

OPEN_STATUSES = (VerificationStatus.AWAITING_SUBMISSION.value, VerificationStatus.SUBMITTED.value)


def is_valid_upi_id(upi_id: str) -> bool:
    return bool(UPI_ID_PATTERN.match(upi_id or ""))


def generate_reference_number() -> str:
    return f"{REFERENCE_PREFIX}{int(time.time() * 1000)}{secrets.randbelow(100000):05d}"


def build_upi_link(upi_id: str, upi_name: str, amount: int, reference: str, note: str, currency: str = "INR") -> str:
    """UPI deep link rendered client-side as a QR code."""
    params = {
        "pa": upi_id,
        "pn": upi_name,
        "am": f"{amount:.2f}",
        "tr": reference,
        "tn": note,
        "cu": currency,
    }
    return "upi://pay?" + urlencode(params, quote_via=quote, safe="@")


def effective_status(verification_status: str, expires_at: datetime, current: datetime) -> str:
    """Expiry is evaluated lazily: an undecided session past expires_at is dead."""
    if verification_status in OPEN_STATUSES and current > expires_at:
        return VerificationStatus.EXPIRED.value
    return verification_status


def payment_session_to_dict(ps, current: datetime, order_numbers: Optional[List[str]] = None,
                            subscription_public_id: Optional[str] = None) -> Dict[str, Any]:
    state = effective_status(ps.verification_status, ps.expires_at, current)
    seconds_left = max(0, int((ps.expires_at - current).total_seconds())) if state in OPEN_STATUSES else 0
    return {
        "payment_id": str(ps.public_id),
        "reference_number": ps.reference_number,
        "total_amount": ps.total_amount,
        "currency": ps.currency,
        "upi_id": ps.upi_id,
        "upi_name": ps.upi_name,
        "qr_code_url": ps.qr_code_url,
        "verification_status": state,
        "upi_transaction_id": ps.upi_transaction_id,
        "upi_reference_number": ps.upi_reference_number,
        "order_numbers": order_numbers or [],
        "subscription_id": subscription_public_id,
        "expires_at": iso(ps.expires_at),
        "expires_in_seconds": seconds_left,
        "submitted_at": iso(ps.submitted_at),
        "verified_at": iso(ps.verified_at),
        "notes": ps.notes,
        "created_at": iso(ps.created_at),
    }
