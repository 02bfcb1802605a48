"""请求处理链依赖。

职责（按顺序执行，前一步失败则后续步骤与路由均不执行）:
1. 按客户端 IP 限流。
2. 对写请求校验 CSRF 令牌（请求头与 Cookie 一致）。
3. 从会话 Cookie 解析用户，并校验审核状态。
4. 生成后续路由统一使用的 Actor。
管理员接口在此基础上追加角色校验；单路由限流通过 ``route_rate_limit`` 工厂声明。
"""

from collections.abc import Callable
import logging

from fastapi import Depends, Request
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthenticationError, AuthorizationError, CsrfError, RateLimitError
from vault_api.db.session import get_db
from vault_api.models.enums import UserRole, UserStatus
from vault_api.models.user import User
from vault_api.services.audit import client_ip
from vault_api.services.authorization import Actor
from vault_api.services.container import AppServices, get_services
from vault_api.services.local_auth import csrf_tokens_match
from vault_api.services.rate_limit import RateLimiter, RateLimitResult

logger = logging.getLogger("vault_api.auth")

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _check_limit(limiter: RateLimiter, identifier: str) -> RateLimitResult | None:
    """执行限流计数，限流后端异常时记录日志并放行。"""
    try:
        return limiter.limit_request(identifier)
    except (RedisError, OSError) as exc:
        logger.error("Rate limit check failed: %s", exc, extra={"context": {"identifier": identifier}})
        return None


def _raise_if_limited(result: RateLimitResult | None, *, identifier: str) -> None:
    if result is None or result.success:
        return
    raise RateLimitError(
        "Rate limit exceeded",
        retry_after=result.retry_after(),
        context={"identifier": identifier, "limit": result.limit},
        headers=result.headers(),
    )


def enforce_rate_limit(request: Request, services: AppServices = Depends(get_services)) -> None:
    """业务接口按客户端 IP 限流。"""
    ip = client_ip(request)
    result = _check_limit(services.rate_limiter, ip)
    _raise_if_limited(result, identifier=ip)


def verify_csrf(request: Request, services: AppServices = Depends(get_services)) -> None:
    """写请求要求 ``X-CSRF-Token`` 请求头与 CSRF Cookie 一致。"""
    if request.method.upper() not in MUTATING_METHODS:
        return
    settings = services.settings
    cookie_value = request.cookies.get(settings.csrf_cookie_name)
    header_value = request.headers.get(settings.csrf_header_name)
    if not csrf_tokens_match(cookie_value, header_value):
        raise CsrfError()


def _load_user(request: Request, db: Session, services: AppServices) -> User:
    token = request.cookies.get(services.settings.session_cookie_name)
    session = services.identity.get_session(token)
    if session is None:
        raise AuthenticationError()
    user = db.get(User, session.user_id)
    if user is None:
        raise AuthenticationError("User profile not found")
    return user


def get_current_actor(
    request: Request,
    _rate_limited: None = Depends(enforce_rate_limit),
    _csrf_checked: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
) -> Actor:
    """完成认证与审核状态校验，返回当前调用方。"""
    user = _load_user(request, db, services)
    if user.status != UserStatus.APPROVED and user.role != UserRole.ADMIN:
        message = "Account suspended" if user.status == UserStatus.SUSPENDED else "Account pending approval"
        raise AuthorizationError(message, context={"status": user.status})

    actor = Actor.from_user(user)
    request.state.actor_id = str(actor.id)
    logger.info(
        "API request",
        extra={
            "context": {
                "method": request.method,
                "path": request.url.path,
                "user_id": str(actor.id),
                "role": actor.role,
                "ip": client_ip(request),
                "user_agent": request.headers.get("user-agent"),
                "request_id": getattr(request.state, "request_id", None),
            }
        },
    )
    return actor


def get_session_user(
    request: Request,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
) -> User:
    """仅校验会话，不要求已审核，供查询自身档案使用。"""
    user = _load_user(request, db, services)
    request.state.actor_id = str(user.id)
    return user


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """管理员接口：在认证基础上要求管理员角色。"""
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    return actor


def route_rate_limit(
    limit: int | None = None,
    window_seconds: int | None = None,
    identifier: Callable[[Request], str] | None = None,
):
    """单路由限流，默认按 ``rate_limit:{ip}:{path}`` 计数，限流后端异常时放行。"""

    def _dep(request: Request, services: AppServices = Depends(get_services)) -> None:
        settings = services.settings
        limiter = services.route_limiter(
            limit or settings.route_rate_limit_requests,
            window_seconds or settings.route_rate_limit_window_seconds,
        )
        key = identifier(request) if identifier else f"rate_limit:{client_ip(request)}:{request.url.path}"
        result = _check_limit(limiter, key)
        if result is not None:
            request.state.rate_limit_headers = result.headers()
        _raise_if_limited(result, identifier=key)

    return _dep
