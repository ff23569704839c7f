from typing import Iterable, Optional
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from milkcart.auth.constants import DELIVERY_ROLE
from milkcart.auth.dependencies import Authentication
from milkcart.common.utils import build_error, json_error
from milkcart.user.repository import identify_delivery_person_by_pid, identify_user_by_pid
from milkcart.middlewares.constants import logger


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Resolve the bearer token into a buyer/admin account or a delivery person.

    ``paths`` are skipped entirely. ``public_get_paths`` skip auth for GET only
    (catalog and plan browsing).
    """

    def __init__(self, app, *, session_maker, paths: Iterable[str], public_get_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.session_maker = session_maker
        self.paths = tuple(paths)
        self.public_get_paths = tuple(public_get_paths or ())

    def _is_public(self, request: Request) -> bool:
        path = request.url.path
        if any(path.startswith(p) for p in self.paths):
            return True
        return request.method == "GET" and any(path.startswith(p) for p in self.public_get_paths)

    async def dispatch(self, request: Request, call_next):

        if self._is_public(request):
            return await call_next(request)

        try:
            auth_token = await Authentication()(request)
        except Exception as e:
            reason = getattr(e, "detail", "Missing or Invalid Auth Headers")
            logger.warning("auth.middleware.failed", extra={
                "reason": reason,
                "path": request.url.path,
                "method": request.method
            })
            payload = build_error("Missing or invalid auth headers", code="INVALID_AUTH")
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        subject_pid = auth_token.get("sub")
        token_roles = auth_token.get("roles") or []

        if DELIVERY_ROLE in token_roles:
            async with self.session_maker() as session:
                person = await identify_delivery_person_by_pid(session, subject_pid)

            if not person or not person["can_login"]:
                logger.warning("auth.middleware.delivery_person_denied", extra={
                    "delivery_person_public_id": subject_pid,
                    "path": request.url.path
                })
                payload = build_error("Delivery account not approved or suspended", code="INVALID_AUTH")
                return json_error(payload, status_code=status.HTTP_403_FORBIDDEN)

            request.state.delivery_person_id = person["id"]
            request.state.user_identifier = None
            request.state.user_public_id = subject_pid
            request.state.user_roles = [DELIVERY_ROLE]
        else:
            async with self.session_maker() as session:
                user = await identify_user_by_pid(session, subject_pid)

            if not user:
                logger.warning("auth.middleware.user_not_found", extra={
                    "user_public_id": subject_pid,
                    "path": request.url.path
                })
                payload = build_error("User unidentified and not authorized", code="INVALID_AUTH")
                return json_error(payload, status_code=status.HTTP_403_FORBIDDEN)

            # stored role is authoritative over token claims
            request.state.user_identifier = user["id"]
            request.state.user_public_id = subject_pid
            request.state.user_roles = [user["role"]]
            request.state.delivery_person_id = None

        logger.debug("auth.middleware.success", extra={
            "user_public_id": subject_pid,
            "path": request.url.path
        })

        return await call_next(request)
