"""应用异常处理注册。"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from vault_api.core.config import get_settings
from vault_api.core.errors import AppError, ErrorCode, InternalServerError, map_store_error
from vault_api.services.validation import format_validation_errors
from vault_api.utils.response import DEFAULT_ERROR_MESSAGE, elapsed_ms, error_payload

logger = logging.getLogger("vault_api.errors")

_CODE_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.AUTHENTICATION_ERROR,
    status.HTTP_403_FORBIDDEN: ErrorCode.AUTHORIZATION_ERROR,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND_ERROR,
    status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.VALIDATION_ERROR,
    status.HTTP_409_CONFLICT: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT_ERROR,
    status.HTTP_502_BAD_GATEWAY: ErrorCode.EXTERNAL_SERVICE_ERROR,
}

_MESSAGE_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "Invalid request",
    status.HTTP_401_UNAUTHORIZED: "Authentication required",
    status.HTTP_403_FORBIDDEN: "Insufficient permissions",
    status.HTTP_404_NOT_FOUND: "Resource not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
    status.HTTP_409_CONFLICT: "Resource already exists",
    status.HTTP_429_TOO_MANY_REQUESTS: "Rate limit exceeded",
}


def _error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, object] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = error_payload(request, code=code, message=message, details=details)
    final_headers = {"X-Error-Code": code}
    request_id = payload["request_id"]
    if request_id:
        final_headers["X-Request-Id"] = request_id
    if headers:
        final_headers.update(headers)
    return JSONResponse(status_code=status_code, content=payload, headers=final_headers)


def _log_context(request: Request, code: str) -> dict[str, object]:
    return {
        "request_id": getattr(request.state, "request_id", None),
        "user_id": getattr(request.state, "actor_id", None),
        "method": request.method,
        "path": request.url.path,
        "code": code,
        "duration_ms": elapsed_ms(request),
    }


async def app_error_handler(request: Request, exc: AppError):
    """将应用错误统一包装为标准错误结构。"""
    context = _log_context(request, exc.code)
    if exc.is_operational:
        logger.warning("API error: %s", exc.message, extra={"context": {**context, **exc.context}})
    else:
        logger.error("API error: %s", exc.message, extra={"context": {**context, **exc.context}})

    message = exc.message
    if not exc.is_operational and not get_settings().app_debug:
        message = DEFAULT_ERROR_MESSAGE

    details: dict[str, object] = {"status_code": exc.status_code}
    if exc.is_operational and exc.context:
        details.update(exc.context)
    return _error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=message,
        details=details,
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """将协议异常映射到应用错误码。"""
    code = _CODE_BY_STATUS.get(exc.status_code, ErrorCode.INTERNAL_SERVER_ERROR)
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else None
    message = message or _MESSAGE_BY_STATUS.get(exc.status_code, "Request failed")
    logger.info("API error: %s", message, extra={"context": _log_context(request, code)})
    return _error_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        details={"status_code": exc.status_code},
        headers=dict(exc.headers or {}),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """统一处理请求参数校验错误，按字段路径聚合错误信息。"""
    errors = format_validation_errors(exc.errors())

    logger.info("API error: validation failed", extra={"context": _log_context(request, ErrorCode.VALIDATION_ERROR)})
    return _error_response(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.VALIDATION_ERROR,
        message="Validation failed",
        details={"status_code": status.HTTP_400_BAD_REQUEST, "errors": errors},
    )


async def store_exception_handler(request: Request, exc: SQLAlchemyError):
    """数据库异常转换为应用错误后输出。"""
    logger.exception("database error", extra={"context": _log_context(request, ErrorCode.DATABASE_ERROR)})
    return await app_error_handler(request, map_store_error(exc))


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，避免内部细节泄露。"""
    logger.exception("unhandled exception", extra={"context": _log_context(request, ErrorCode.INTERNAL_SERVER_ERROR)})
    message = str(exc) if get_settings().app_debug else DEFAULT_ERROR_MESSAGE
    return await app_error_handler(request, InternalServerError(message))


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(SQLAlchemyError)(store_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
