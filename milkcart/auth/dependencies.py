from typing import Any, Dict
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer
from milkcart.auth.constants import logger
from milkcart.auth.utils import decode_token
from milkcart.common.custom_exceptions import AuthorizationError


class Authentication(HTTPBearer):
    def __init__(self, auto_error=True):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request: Request) -> Dict[str, Any]:
        auth_creds = await super().__call__(request)
        token = auth_creds.credentials

        decoded_token = decode_token(token)

        if not decoded_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token provided.")

        return decoded_token


def require_roles(*roles: str):
    """Router/route dependency: the authenticated identity must hold one of ``roles``."""
    allowed = set(roles)

    async def _checker(request: Request):
        user_roles = set(getattr(request.state, "user_roles", None) or [])

        if not user_roles & allowed:
            logger.warning("auth.role.denied", extra={
                "required": sorted(allowed),
                "held": sorted(user_roles),
                "path": request.url.path,
            })
            raise AuthorizationError("Not authorized for this resource")

        return True

    return Depends(_checker)
