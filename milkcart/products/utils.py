import base64
from datetime import datetime
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional, Tuple

from milkcart.common.utils import iso
from milkcart.config.settings import config_settings

CURSOR_SECRET = config_settings.CURSOR_SECRET.encode()

def _sign(payload_bytes: bytes) -> str:
    sig = hmac.new(CURSOR_SECRET, payload_bytes, hashlib.sha256).digest()
    return base64.urlsafe_b64encode(sig).decode().rstrip("=")


def decode_cursor(token: str, max_age: Optional[int] = None) -> Tuple[datetime, int]:
    try:
        token_part, sig_part = token.split(".")
    except ValueError:
        raise ValueError("Invalid cursor format")
    padded = token_part + "=" * ((4 - len(token_part) % 4) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (ValueError, TypeError):
        raise ValueError("Invalid cursor encoding")
    expected = _sign(raw)
    if not hmac.compare_digest(expected, sig_part):
        raise ValueError("Cursor signature mismatch")
    payload = json.loads(raw.decode())
    if max_age is not None and int(time.time()) - payload.get("t", 0) > max_age:
        raise ValueError("Cursor expired")
    created_at_iso, id_value = payload["s"]
    return datetime.fromisoformat(created_at_iso), int(id_value)


def encode_cursor(last_created_at: datetime, last_id: int, ttl_seconds: int = 3600) -> str:
    payload = {
        "t": int(time.time()),
        "ttl": ttl_seconds,
        "s": [last_created_at.isoformat(), str(last_id)]
    }
    raw_bytes = json.dumps(payload, separators=(",", ":"), default=str).encode()
    bytes_encoded = base64.urlsafe_b64encode(raw_bytes).decode().rstrip("=")
    bytes_signed = _sign(raw_bytes)
    return f"{bytes_encoded}.{bytes_signed}"


def product_to_dict(p) -> Dict[str, Any]:
    return {
        "public_id": str(p.public_id),
        "name": p.name,
        "description": p.description,
        "category": p.category,
        "unit": p.unit,
        "price": p.price,
        "discount_price": p.discount_price,
        "effective_price": p.effective_price,
        "stock_qty": p.stock_qty,
        "in_stock": p.stock_qty > 0,
        "is_active": p.is_active,
        "created_at": iso(p.created_at),
    }
