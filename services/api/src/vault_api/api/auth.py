"""认证接口。"""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from vault_api.core.config import Settings
from vault_api.db.session import get_db
from vault_api.dependencies import enforce_rate_limit, get_session_user, route_rate_limit, verify_csrf
from vault_api.models.enums import AuditAction, UserStatus
from vault_api.models.user import User
from vault_api.schemas.auth import (
    AuthInviteSignupRequest,
    AuthLoginRequest,
    AuthLogoutData,
    AuthMagicLinkRequest,
    AuthOtpVerifyRequest,
    AuthSessionData,
    AuthSignupData,
    AuthSignupRequest,
    CsrfTokenData,
    OtpChallengeData,
    UserProfileData,
)
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.services.accounts import sign_up, sign_up_with_invite
from vault_api.services.audit import record_activity
from vault_api.services.container import AppServices, get_services
from vault_api.services.local_auth import SessionToken, generate_csrf_token
from vault_api.utils.response import success

router = APIRouter(prefix="/auth", tags=["auth"])

# 未登录写接口同样按 IP 限流并校验 CSRF。
PUBLIC_WRITE_DEPENDENCIES = [Depends(enforce_rate_limit), Depends(verify_csrf)]


def profile_payload(user: User) -> dict:
    return UserProfileData.model_validate(user).model_dump(mode="json")


def _set_session_cookie(response: Response, session: SessionToken, settings: Settings) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.token,
        max_age=session.expires_in,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def _session_payload(user: User, session: SessionToken) -> dict:
    return {
        "user": profile_payload(user),
        "expires_at": session.expires_at.isoformat(),
        "expires_in": session.expires_in,
    }


def _start_session(
    db: Session,
    request: Request,
    response: Response,
    services: AppServices,
    user: User,
    *,
    method: str,
) -> dict:
    session = services.identity.create_session(db, user)
    record_activity(
        db,
        request,
        user_id=user.id,
        action=AuditAction.USER_LOGIN,
        resource_type="user",
        resource_id=user.id,
        details={"method": method},
    )
    db.commit()
    db.refresh(user)
    _set_session_cookie(response, session, services.settings)
    return _session_payload(user, session)


@router.get(
    "/csrf",
    summary="获取 CSRF 令牌",
    description="下发 CSRF Cookie，并返回需要回传到 `X-CSRF-Token` 请求头的令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CsrfTokenData],
)
def issue_csrf_token(request: Request, response: Response, services: AppServices = Depends(get_services)):
    """签发 CSRF 令牌。"""
    token = generate_csrf_token()
    response.set_cookie(
        key=services.settings.csrf_cookie_name,
        value=token,
        httponly=False,
        secure=services.settings.cookie_secure,
        samesite="strict",
        path="/",
    )
    return success(request, {"csrf_token": token})


@router.post(
    "/signup",
    summary="注册账号",
    description="首个注册用户自动成为管理员；其余用户注册后需等待管理员审核。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSignupData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    dependencies=PUBLIC_WRITE_DEPENDENCIES,
)
def signup(
    payload: AuthSignupRequest,
    request: Request,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """注册本地账号。"""
    user = sign_up(
        db,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
        password_iterations=services.settings.auth_password_hash_iterations,
    )
    record_activity(
        db,
        request,
        user_id=user.id,
        action=AuditAction.USER_REGISTERED,
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email, "role": user.role},
    )
    db.commit()
    db.refresh(user)
    services.cache.invalidate_by_tag("spaces")
    requires_approval = user.status != UserStatus.APPROVED
    message = (
        "Account created. An administrator must approve it before you can sign in."
        if requires_approval
        else "Account created successfully"
    )
    return success(
        request,
        {"user": profile_payload(user), "requires_approval": requires_approval},
        message=message,
    )


@router.post(
    "/invite-signup",
    summary="邀请码注册",
    description="使用有效邀请码注册，邀请码按次数原子占用，注册后账号直接生效。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSignupData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    dependencies=PUBLIC_WRITE_DEPENDENCIES,
)
def invite_signup(
    payload: AuthInviteSignupRequest,
    request: Request,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """邀请码注册。"""
    user, invite = sign_up_with_invite(
        db,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
        invite_code=payload.invite_code,
        password_iterations=services.settings.auth_password_hash_iterations,
    )
    record_activity(
        db,
        request,
        user_id=user.id,
        action=AuditAction.INVITE_CODE_USED,
        resource_type="invite_code",
        resource_id=invite.id,
        details={"code": invite.code, "current_uses": invite.current_uses},
    )
    db.commit()
    db.refresh(user)
    services.cache.invalidate_by_tag("spaces")
    return success(
        request,
        {"user": profile_payload(user), "requires_approval": False},
        message="Account created successfully",
    )


@router.post(
    "/login",
    summary="邮箱密码登录",
    description="校验邮箱密码后下发 HttpOnly 会话 Cookie。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSessionData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    dependencies=PUBLIC_WRITE_DEPENDENCIES,
)
def login(
    payload: AuthLoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """邮箱密码登录。"""
    user = services.identity.sign_in_with_password(db, email=payload.email, password=payload.password)
    data = _start_session(db, request, response, services, user, method="password")
    return success(request, data, message="Signed in successfully")


@router.post(
    "/magic-link",
    summary="发送登录验证码",
    description="按邮箱发送魔法链接，或按手机号发送短信验证码；未注册的标识同样返回成功。该接口另按 IP 与路径单独限流。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[OtpChallengeData],
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    dependencies=[*PUBLIC_WRITE_DEPENDENCIES, Depends(route_rate_limit())],
)
def magic_link(
    payload: AuthMagicLinkRequest,
    request: Request,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """下发一次性验证码。"""
    challenge = services.identity.sign_in_with_otp(db, email=payload.email, phone=payload.phone)
    message = (
        "Check your email for the magic link!"
        if challenge.channel == "email"
        else "Check your phone for the verification code!"
    )
    return success(
        request,
        {"channel": challenge.channel, "expires_in": challenge.expires_in},
        message=message,
    )


@router.post(
    "/otp/verify",
    summary="校验登录验证码",
    description="验证码正确时下发会话 Cookie，验证码只能使用一次。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSessionData],
    responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    dependencies=PUBLIC_WRITE_DEPENDENCIES,
)
def verify_otp(
    payload: AuthOtpVerifyRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """校验验证码并登录。"""
    user = services.identity.verify_otp(db, identifier=payload.identifier, token=payload.token)
    data = _start_session(db, request, response, services, user, method="otp")
    return success(request, data, message="Successfully verified!")


@router.get(
    "/callback",
    summary="魔法链接回调",
    description="用魔法链接中的一次性授权码换取会话。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSessionData],
    responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    dependencies=[Depends(enforce_rate_limit)],
)
def callback(
    request: Request,
    response: Response,
    code: str = Query(min_length=1, max_length=128, description="一次性授权码。"),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """授权码换取会话。"""
    user = services.identity.exchange_code_for_session(db, code)
    data = _start_session(db, request, response, services, user, method="magic_link")
    return success(request, data, message="Signed in successfully")


@router.post(
    "/logout",
    summary="退出登录",
    description="吊销当前会话并清除会话 Cookie。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLogoutData],
    responses={403: {"model": ErrorResponse}},
    dependencies=[Depends(verify_csrf)],
)
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """退出登录。"""
    token = request.cookies.get(services.settings.session_cookie_name)
    session = services.identity.get_session(token)
    revoked = services.identity.sign_out(token)
    if session is not None:
        record_activity(
            db,
            request,
            user_id=session.user_id,
            action=AuditAction.USER_LOGOUT,
            resource_type="user",
            resource_id=session.user_id,
        )
        db.commit()
    response.delete_cookie(services.settings.session_cookie_name, path="/")
    return success(request, {"logged_out": True, "revoked": revoked}, message="Signed out successfully")


@router.get(
    "/me",
    summary="当前用户",
    description="返回当前会话对应的用户档案，待审核用户同样可查询自身状态。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserProfileData],
    responses={401: {"model": ErrorResponse}},
)
def me(request: Request, user: User = Depends(get_session_user)):
    """查询当前用户。"""
    return success(request, profile_payload(user))
