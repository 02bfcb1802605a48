"""应用错误分类。

所有业务层主动抛出的错误都继承 ``AppError``，由统一异常处理器转换为标准错误结构。
``is_operational`` 为 False 的错误属于程序缺陷，对外只返回通用提示。
"""

from collections.abc import Callable
from enum import StrEnum
import logging
import time
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError

logger = logging.getLogger("vault_api.errors")

T = TypeVar("T")


class ErrorCode(StrEnum):
    """机器可识别错误码。"""

    VALIDATION_ERROR = "VALIDATION_ERROR"  # 请求参数或业务状态校验失败。
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"  # 未登录、会话失效或 CSRF 校验失败。
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"  # 已登录但无权执行该操作。
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"  # 资源不存在或已删除。
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"  # 超出限流阈值。
    DATABASE_ERROR = "DATABASE_ERROR"  # 数据库操作失败。
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"  # 外部依赖（存储/身份服务）失败。
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"  # 未预期的程序错误。


class AppError(Exception):
    """应用错误基类。"""

    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR
    status_code: int = 500
    is_operational: bool = True

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.headers = headers or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!s}, message={self.message!r})"


class ValidationError(AppError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class AuthenticationError(AppError):
    code = ErrorCode.AUTHENTICATION_ERROR
    status_code = 401

    def __init__(self, message: str = "Authentication required", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class CsrfError(AuthenticationError):
    """CSRF 校验失败沿用认证错误码，但返回 403。"""

    status_code = 403

    def __init__(self, message: str = "Invalid CSRF token", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class AuthorizationError(AppError):
    code = ErrorCode.AUTHORIZATION_ERROR
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    code = ErrorCode.NOT_FOUND_ERROR
    status_code = 404

    def __init__(self, resource: str = "Resource", **kwargs: Any) -> None:
        super().__init__(f"{resource} not found", **kwargs)


class RateLimitError(AppError):
    code = ErrorCode.RATE_LIMIT_ERROR
    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", *, retry_after: int = 60, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = max(1, int(retry_after))
        self.headers.setdefault("Retry-After", str(self.retry_after))


class DatabaseError(AppError):
    code = ErrorCode.DATABASE_ERROR
    status_code = 500

    def __init__(self, message: str = "Database operation failed", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ExternalServiceError(AppError):
    code = ErrorCode.EXTERNAL_SERVICE_ERROR
    status_code = 502

    def __init__(self, service: str, message: str = "request failed", **kwargs: Any) -> None:
        super().__init__(f"{service}: {message}", **kwargs)
        self.service = service


class InternalServerError(AppError):
    code = ErrorCode.INTERNAL_SERVER_ERROR
    status_code = 500
    is_operational = False

    def __init__(self, message: str = "Internal server error", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


def map_store_error(exc: Exception) -> AppError:
    """将持久层异常转换为应用错误。"""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, NoResultFound):
        return NotFoundError()

    text = str(getattr(exc, "orig", None) or exc).lower()
    if isinstance(exc, IntegrityError):
        if "duplicate key" in text or "unique constraint" in text:
            return ValidationError("Resource already exists")
        if "foreign key" in text:
            return ValidationError("Invalid reference")
        return ValidationError("Invalid data")
    if isinstance(exc, SQLAlchemyError):
        return DatabaseError(context={"error": type(exc).__name__})
    if "not found" in text:
        return NotFoundError()
    return InternalServerError(context={"error": type(exc).__name__})


def with_retry(
    operation: Callable[[], T],
    *,
    max_retries: int = 3,
    delay_seconds: float = 1.0,
    backoff: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """按指数退避重试幂等操作。

    业务可预期错误（``is_operational``）不重试，直接抛出。
    """
    attempt = 0
    wait = delay_seconds
    while True:
        try:
            return operation()
        except AppError as exc:
            if exc.is_operational:
                raise
            last_exc: Exception = exc
        except Exception as exc:
            last_exc = exc

        attempt += 1
        if attempt >= max_retries:
            raise last_exc
        logger.warning("retrying operation attempt=%s/%s wait=%.2fs error=%s", attempt, max_retries, wait, last_exc)
        sleep(wait)
        wait *= backoff
