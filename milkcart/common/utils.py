from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo

from fastapi.responses import JSONResponse
from milkcart.common.constants import request_id_ctx
from milkcart.config.settings import config_settings


def now() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache(maxsize=1)
def store_tz() -> ZoneInfo:
    return ZoneInfo(config_settings.STORE_TIMEZONE)


def to_store_time(dt: datetime) -> datetime:
    """Convert an aware datetime into the store's business timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(store_tz())


def store_today(current: Optional[datetime] = None) -> date:
    return to_store_time(current or now()).date()


def build_success(data: Any, request_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "error": None,
        "request_id": request_id or request_id_ctx.get(None),
    }

def build_error(message: str,
                code: Union[str, int] = "UNKNOWN_ERROR",
                details: Optional[Any] = None,
                request_id: Optional[str] = None) -> Dict[str, Any]:

    return {
        "success": False,
        "message": message,
        "data": None,
        "error": {"code": code, "details": details},
        "request_id": request_id or request_id_ctx.get(None),
    }

def json_ok(content: Dict[str, Any], status_code: int = 200, headers = None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)

def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)

def success_response(data: Any, status_code: int = 200, headers: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content = build_success(data)
    return json_ok(content, status_code=status_code, headers=headers)


def iso(value: Optional[Union[datetime, date]]) -> Optional[str]:
    return value.isoformat() if value is not None else None
