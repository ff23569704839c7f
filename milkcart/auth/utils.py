from datetime import datetime, timedelta, timezone
import secrets
from typing import Any, Dict, List, Optional
from jose import jwt, JWTError
from milkcart.config.settings import config_settings

ACCESS_TOKEN_EXPIRE_MINUTES = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def create_access_token(subject_public_id, roles: List[str], expires_dur: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Mint a bearer token the way the identity provider does (used by seed scripts and tests)."""
    now = datetime.now(timezone.utc)
    expiry = now + timedelta(minutes=expires_dur)

    payload = {
        "sub": str(subject_public_id),
        "iat": int(now.timestamp()),
        "exp": int(expiry.timestamp()),
        "jti": secrets.token_hex(16),
        "roles": roles,
    }
    return jwt.encode(claims=payload, key=config_settings.JWT_SECRET, algorithm=config_settings.JWT_ALGO)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify signature and expiry of a bearer token, None when invalid"""
    try:
        return jwt.decode(
            token,
            key=config_settings.JWT_SECRET,
            algorithms=[config_settings.JWT_ALGO],
        )
    except JWTError:
        return None
