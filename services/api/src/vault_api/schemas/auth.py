"""注册、登录与会话相关结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from vault_api.schemas.common import BaseSchema
from vault_api.services.validation import (
    DISPLAY_NAME_PATTERN,
    INVITE_CODE_PATTERN,
    password_problems,
)

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^\+?[0-9]{6,20}$"


class AuthSignupRequest(BaseModel):
    """注册请求。"""

    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=EMAIL_PATTERN,
        description="登录邮箱。",
        examples=["alice@example.com"],
    )
    password: str = Field(min_length=8, max_length=128, description="登录密码。", examples=["StrongPassw0rd!"])
    confirm_password: str = Field(min_length=1, max_length=128, description="确认密码。")
    display_name: str = Field(min_length=2, max_length=100, description="展示名，仅限字母、空格、连字符、撇号。")

    @field_validator("password")
    @classmethod
    def check_password_policy(cls, value: str) -> str:
        problems = password_problems(value)
        if problems:
            raise ValueError("; ".join(problems))
        return value

    @field_validator("display_name")
    @classmethod
    def check_display_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not DISPLAY_NAME_PATTERN.match(cleaned):
            raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
        return cleaned

    @model_validator(mode="after")
    def check_passwords_match(self) -> "AuthSignupRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class AuthInviteSignupRequest(AuthSignupRequest):
    """邀请码注册请求。"""

    invite_code: str = Field(min_length=1, max_length=32, description="邀请码。", examples=["AB12CD34"])

    @field_validator("invite_code")
    @classmethod
    def check_invite_code(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not INVITE_CODE_PATTERN.match(normalized):
            raise ValueError("Invalid invite code format")
        return normalized


class AuthLoginRequest(BaseModel):
    """邮箱密码登录请求。"""

    email: str = Field(min_length=5, max_length=256, pattern=EMAIL_PATTERN, description="登录邮箱。")
    password: str = Field(min_length=1, max_length=128, description="登录密码。")


class AuthMagicLinkRequest(BaseModel):
    """魔法链接或短信验证码请求，邮箱与手机号二选一。"""

    email: str | None = Field(default=None, max_length=256, pattern=EMAIL_PATTERN, description="邮箱。")
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN, description="手机号。")

    @model_validator(mode="after")
    def check_identifier(self) -> "AuthMagicLinkRequest":
        if not self.email and not self.phone:
            raise ValueError("Email or phone is required")
        return self


class AuthOtpVerifyRequest(BaseModel):
    """一次性验证码校验请求。"""

    identifier: str = Field(min_length=3, max_length=256, description="邮箱或手机号。")
    token: str = Field(min_length=6, max_length=6, pattern=r"^[0-9]{6}$", description="6 位验证码。")


class CsrfTokenData(BaseSchema):
    """CSRF 令牌。"""

    csrf_token: str = Field(description="需回传到 X-CSRF-Token 请求头的令牌。")


class UserProfileData(BaseSchema):
    """用户档案。"""

    id: UUID = Field(description="用户 ID。")
    email: str = Field(description="登录邮箱。")
    phone: str | None = Field(default=None, description="手机号。")
    display_name: str = Field(description="展示名。")
    role: str = Field(description="角色。")
    status: str = Field(description="审核状态。")
    invited_by: UUID | None = Field(default=None, description="邀请人。")
    approved_by: UUID | None = Field(default=None, description="审核人。")
    approved_at: datetime | None = Field(default=None, description="审核时间。")
    last_login_at: datetime | None = Field(default=None, description="最近登录时间。")
    created_at: datetime | None = Field(default=None, description="注册时间。")


class AuthSessionData(BaseSchema):
    """登录结果。"""

    user: UserProfileData = Field(description="当前用户。")
    expires_at: datetime = Field(description="会话过期时间（UTC）。")
    expires_in: int = Field(description="距过期剩余秒数。")


class AuthSignupData(BaseSchema):
    """注册结果。"""

    user: UserProfileData = Field(description="新建用户。")
    requires_approval: bool = Field(description="是否需要管理员审核后才能使用。")


class OtpChallengeData(BaseSchema):
    """验证码下发结果。"""

    channel: str = Field(description="下发渠道（email/phone）。")
    expires_in: int = Field(description="验证码有效期（秒）。")


class AuthLogoutData(BaseSchema):
    """登出结果。"""

    logged_out: bool = Field(description="是否已完成登出。")
    revoked: bool = Field(description="当前会话是否已吊销。")
