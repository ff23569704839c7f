from typing import Any, Optional
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from milkcart import logger
from milkcart.common.utils import build_error, json_error
from milkcart.common.constants import request_id_ctx


class StorefrontError(Exception):
    """Base for every domain failure surfaced at the HTTP boundary."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "STOREFRONT_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthorizationError(StorefrontError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class IllegalTransitionError(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    code = "ILLEGAL_TRANSITION"


class OutOfStockError(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    code = "OUT_OF_STOCK"


class DuplicateSessionError(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE_SESSION"


class AlreadyProcessedError(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_PROCESSED"


class SessionExpiredError(StorefrontError):
    status_code = status.HTTP_410_GONE
    code = "SESSION_EXPIRED"


async def storefront_error_handler(request: Request, exc: StorefrontError):
    rid = request_id_ctx.get(None)

    logger.warning(
        "request.domain_error",
        extra={
            "code": exc.code,
            "reason": exc.message,
            "path": request.url.path,
            "method": request.method,
        },
    )

    payload = build_error(exc.message, code=exc.code, details=jsonable_encoder(exc.details), request_id=rid)
    return json_error(payload, status_code=exc.status_code)


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    payload = build_error("Internal Server Error", code="SERVER_ERROR", request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    payload = build_error("Invalid request", code="UNPROCESSABLE_ENTITY",
                          details=jsonable_encoder(exc.errors()), request_id=rid)
    return json_error(payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"

    payload = build_error(message, code=f"HTTP_{exc.status_code}", details=exc.detail, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        StorefrontError,
        storefront_error_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )
