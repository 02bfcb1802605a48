"""身份与会话服务。

会话为签名令牌，存放在 HttpOnly Cookie 中；吊销名单、一次性验证码、
回调授权码都保存在共享键值存储，过期自动清理。
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import hmac
import json
import logging
import secrets
from typing import Any
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.orm import Session

from vault_api.core.config import Settings
from vault_api.core.errors import AuthenticationError, ExternalServiceError
from vault_api.models.base import utc_now
from vault_api.models.user import User, UserCredential
from vault_api.services.local_auth import (
    SessionToken,
    decode_session_token,
    issue_session_token,
    verify_password,
)

logger = logging.getLogger("vault_api.identity")

INVALID_CREDENTIALS = "Invalid email or password"


@dataclass
class SessionInfo:
    """已校验的会话。"""

    # 用户 ID。
    user_id: UUID
    # 登录邮箱。
    email: str | None
    # 令牌唯一 ID。
    jti: str
    # 过期时间戳（Unix 秒）。
    expires_at: int


@dataclass
class OtpChallenge:
    """一次性验证码下发结果。"""

    # 接收渠道（email/phone）。
    channel: str
    # 接收方标识（邮箱或手机号）。
    identifier: str
    # 验证码有效期（秒）。
    expires_in: int


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityProvider:
    """会话签发、校验与一次性验证码登录。"""

    def __init__(self, settings: Settings, store: Any) -> None:
        self.settings = settings
        self.store = store

    def _key(self, *parts: str) -> str:
        return self.settings.auth_key_prefix + ":".join(parts)

    def create_session(self, db: Session, user: User) -> SessionToken:
        """为用户签发会话并记录登录时间（由调用方提交事务）。"""
        user.last_login_at = utc_now()
        db.flush()
        return issue_session_token(user, self.settings)

    def get_session(self, token: str | None) -> SessionInfo | None:
        """校验会话令牌，非法、过期或已吊销返回 None。"""
        if not token:
            return None
        claims = decode_session_token(token, self.settings)
        if claims is None:
            return None
        try:
            if self.store.exists(self._key("revoked", claims["jti"])):
                return None
        except RedisError as exc:
            raise ExternalServiceError("session store", "unavailable") from exc
        try:
            user_id = UUID(str(claims["sub"]))
        except ValueError:
            return None
        return SessionInfo(
            user_id=user_id,
            email=claims.get("email"),
            jti=claims["jti"],
            expires_at=int(claims["exp"]),
        )

    def get_user(self, db: Session, token: str | None) -> User | None:
        session = self.get_session(token)
        if session is None:
            return None
        return db.get(User, session.user_id)

    def sign_out(self, token: str | None) -> bool:
        """吊销会话直到其自然过期，返回是否执行了吊销。"""
        session = self.get_session(token)
        if session is None:
            return False
        ttl = max(1, session.expires_at - int(datetime.now(timezone.utc).timestamp()))
        try:
            self.store.setex(self._key("revoked", session.jti), ttl, "1")
        except RedisError as exc:
            raise ExternalServiceError("session store", "unavailable") from exc
        return True

    def sign_in_with_password(self, db: Session, *, email: str, password: str) -> User:
        """邮箱密码登录，失败统一返回同一提示避免账号枚举。"""
        user = db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()
        if user is None:
            raise AuthenticationError(INVALID_CREDENTIALS)
        credential = db.execute(
            select(UserCredential).where(UserCredential.user_id == user.id)
        ).scalar_one_or_none()
        if credential is None or credential.status != "active":
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not verify_password(password, credential.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS)
        return user

    def _find_user(self, db: Session, *, email: str | None, phone: str | None) -> User | None:
        if email:
            return db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()
        if phone:
            return db.execute(select(User).where(User.phone == phone.strip())).scalar_one_or_none()
        return None

    def sign_in_with_otp(self, db: Session, *, email: str | None = None, phone: str | None = None) -> OtpChallenge:
        """下发一次性验证码（邮件魔法链接或短信）。

        未注册的标识同样返回成功，但不生成验证码。
        """
        channel = "email" if email else "phone"
        identifier = normalize_email(email) if email else (phone or "").strip()
        ttl = self.settings.auth_otp_ttl_seconds
        user = self._find_user(db, email=email, phone=phone)
        if user is None:
            logger.info("otp requested for unknown identifier channel=%s", channel)
            return OtpChallenge(channel=channel, identifier=identifier, expires_in=ttl)

        code = f"{secrets.randbelow(1_000_000):06d}"
        callback_code = secrets.token_urlsafe(24)
        try:
            self.store.setex(
                self._key("otp", identifier),
                ttl,
                json.dumps({"code": code, "user_id": str(user.id)}),
            )
            self.store.setex(self._key("code", callback_code), ttl, str(user.id))
        except RedisError as exc:
            raise ExternalServiceError("session store", "unavailable") from exc

        # 投递通道未接入，仅记录下发事件。
        logger.info(
            "otp issued channel=%s user_id=%s callback=%s/auth/callback?code=%s",
            channel,
            user.id,
            self.settings.api_prefix,
            callback_code,
        )
        return OtpChallenge(channel=channel, identifier=identifier, expires_in=ttl)

    def verify_otp(self, db: Session, *, identifier: str, token: str) -> User:
        """校验一次性验证码，成功后验证码立即失效。"""
        key = self._key("otp", normalize_email(identifier) if "@" in identifier else identifier.strip())
        try:
            raw = self.store.get(key)
        except RedisError as exc:
            raise ExternalServiceError("session store", "unavailable") from exc
        if not raw:
            raise AuthenticationError("Invalid or expired code")

        stored = json.loads(raw)
        if not hmac.compare_digest(str(stored["code"]), token.strip()):
            raise AuthenticationError("Invalid or expired code")
        self.store.delete(key)

        user = db.get(User, UUID(stored["user_id"]))
        if user is None:
            raise AuthenticationError("Invalid or expired code")
        return user

    def exchange_code_for_session(self, db: Session, code: str) -> User:
        """用回调授权码换取用户，授权码只能使用一次。"""
        key = self._key("code", code)
        try:
            user_id = self.store.get(key)
            if user_id:
                self.store.delete(key)
        except RedisError as exc:
            raise ExternalServiceError("session store", "unavailable") from exc
        if not user_id:
            raise AuthenticationError("Invalid or expired code")
        user = db.get(User, UUID(user_id))
        if user is None:
            raise AuthenticationError("Invalid or expired code")
        return user
