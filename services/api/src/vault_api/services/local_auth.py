"""本地口令与会话令牌工具。"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import secrets
from typing import Any
from uuid import uuid4

import jwt
from jwt import InvalidTokenError

from vault_api.core.config import Settings
from vault_api.models.user import User


@dataclass
class SessionToken:
    """签发后的会话令牌。"""

    # 编码后的令牌。
    token: str
    # 令牌唯一 ID，用于吊销。
    jti: str
    # 过期时间（UTC）。
    expires_at: datetime

    @property
    def expires_in(self) -> int:
        return max(0, int((self.expires_at - datetime.now(timezone.utc)).total_seconds()))


def hash_password(password: str, *, iterations: int) -> str:
    """使用 PBKDF2-SHA256 生成口令哈希。"""
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    salt_b64 = base64.b64encode(salt).decode("ascii")
    digest_b64 = base64.b64encode(digest).decode("ascii")
    return f"pbkdf2_sha256${iterations}${salt_b64}${digest_b64}"


def verify_password(password: str, password_hash: str) -> bool:
    """校验口令是否匹配。"""
    try:
        algorithm, iterations_text, salt_b64, expected_digest_b64 = password_hash.split("$", 3)
        if algorithm != "pbkdf2_sha256":
            return False
        iterations = int(iterations_text)
        salt = base64.b64decode(salt_b64.encode("ascii"))
        expected_digest = base64.b64decode(expected_digest_b64.encode("ascii"))
    except (ValueError, TypeError, binascii.Error):
        return False

    actual_digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(actual_digest, expected_digest)


def issue_session_token(user: User, settings: Settings) -> SessionToken:
    """签发会话令牌，角色与状态不写入令牌，每次请求从数据库读取。"""
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=settings.session_ttl_seconds)
    jti = str(uuid4())
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "email": user.email,
        "iss": settings.auth_jwt_issuer,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
        "jti": jti,
    }
    token = jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)
    return SessionToken(token=token, jti=jti, expires_at=expires_at)


def decode_session_token(token: str, settings: Settings) -> dict[str, Any] | None:
    """解码并校验会话令牌，非法或过期返回 None。"""
    try:
        return jwt.decode(
            token,
            key=settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            issuer=settings.auth_jwt_issuer,
            leeway=settings.auth_jwt_leeway_seconds,
            options={"require": ["sub", "exp", "jti"]},
        )
    except InvalidTokenError:
        return None


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def csrf_tokens_match(cookie_value: str | None, header_value: str | None) -> bool:
    """常量时间比较 Cookie 与请求头中的 CSRF 令牌。"""
    if not cookie_value or not header_value:
        return False
    return hmac.compare_digest(cookie_value.encode("utf-8"), header_value.encode("utf-8"))
