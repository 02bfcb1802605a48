"""应用中间件注册。"""

import logging
from time import perf_counter
import uuid

from fastapi import FastAPI, Request

from vault_api.exceptions import unexpected_exception_handler

logger = logging.getLogger("vault_api.access")

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; connect-src 'self'; frame-ancestors 'none'"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


async def request_id_middleware(request: Request, call_next):
    """注入请求追踪 ID，记录响应日志，并通过响应头返回耗时。"""
    request.state.request_id = str(uuid.uuid4())
    request.state.request_started_at = perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        response = await unexpected_exception_handler(request, exc)

    elapsed_ms = round((perf_counter() - request.state.request_started_at) * 1000, 2)
    response.headers["X-Request-Id"] = request.state.request_id
    response.headers["X-Response-Time"] = f"{elapsed_ms}ms"
    for name, value in (getattr(request.state, "rate_limit_headers", None) or {}).items():
        response.headers.setdefault(name, value)

    logger.info(
        "API response",
        extra={
            "context": {
                "request_id": request.state.request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "user_id": getattr(request.state, "actor_id", None),
            }
        },
    )
    return response


async def security_headers_middleware(request: Request, call_next):
    """为所有响应追加安全响应头。"""
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


def register_middlewares(app: FastAPI) -> None:
    """集中注册中间件（后注册的先执行）。"""
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)
