"""统一响应结构工具。"""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from fastapi import Request

DEFAULT_ERROR_MESSAGE = "Internal server error"

_SUCCESS_MESSAGE_BY_METHOD = {
    "GET": "Request completed",
    "POST": "Operation completed",
    "PUT": "Updated successfully",
    "PATCH": "Updated successfully",
    "DELETE": "Deleted successfully",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def elapsed_ms(request: Request) -> float | None:
    """返回请求已处理毫秒数。"""
    started_at = getattr(request.state, "request_started_at", None)
    if isinstance(started_at, float):
        return round((perf_counter() - started_at) * 1000, 2)
    return None


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "") or ""


def _default_success_meta(request: Request) -> dict[str, Any]:
    return {
        "message": _SUCCESS_MESSAGE_BY_METHOD.get(request.method.upper(), "Operation completed"),
        "method": request.method.upper(),
        "path": request.url.path,
        "timestamp": utc_now_iso(),
        "process_ms": elapsed_ms(request),
    }


def success(
    request: Request,
    data: Any,
    meta: dict[str, Any] | None = None,
    *,
    message: str | None = None,
) -> dict[str, Any]:
    """构造统一成功响应结构。"""
    final_meta = _default_success_meta(request)
    if message:
        final_meta["message"] = message
    if meta:
        final_meta.update(meta)
    return {
        "success": True,
        "request_id": _request_id(request),
        "data": data,
        "meta": final_meta,
    }


def page_meta(*, total: int, offset: int, limit: int) -> dict[str, Any]:
    """构造分页元信息。"""
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "hasMore": offset + limit < total,
    }


def error_payload(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """构造统一错误响应结构。"""
    final_details = {
        "method": request.method.upper(),
        "path": request.url.path,
        "timestamp": utc_now_iso(),
    }
    if details:
        final_details.update(details)
    return {
        "success": False,
        "request_id": _request_id(request),
        "error": {
            "code": code,
            "message": message,
            "details": final_details,
        },
    }
