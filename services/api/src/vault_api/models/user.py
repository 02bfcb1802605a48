"""用户、凭据与邀请码模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vault_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from vault_api.models.enums import UserRole, UserStatus


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """用户档案，角色与审核状态决定可执行的操作。"""

    __tablename__ = "users"

    # 登录邮箱，全局唯一。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 可选手机号，用于短信验证码登录。
    phone: Mapped[str | None] = mapped_column(String(32), unique=True)
    # 展示名。
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 角色（admin/member），仅管理员可变更。
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=UserRole.MEMBER)
    # 审核状态（pending/approved/suspended）。
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=UserStatus.PENDING)
    # 注册时使用的邀请码。
    invite_code: Mapped[str | None] = mapped_column(String(32))
    # 邀请人用户 ID。
    invited_by: Mapped[UUID | None] = mapped_column()
    # 审核人用户 ID。
    approved_by: Mapped[UUID | None] = mapped_column()
    # 审核通过时间。
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # 最近一次登录时间。
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserCredential(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """用户本地凭据（邮箱密码）。"""

    __tablename__ = "user_credentials"
    __table_args__ = (UniqueConstraint("user_id", name="uk_user_credential_user"),)

    # 用户 ID（逻辑关联 users.id，不声明数据库外键）。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 口令哈希，不存明文。
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    # 凭据状态，例如 active/disabled。
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    # 最近一次修改口令时间。
    password_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class InviteCode(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """注册邀请码，使用次数不超过上限。"""

    __tablename__ = "invite_codes"

    # 邀请码本体（大写字母、数字、连字符）。
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    # 生成该邀请码的管理员。
    created_by: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 最大可用次数。
    max_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # 已使用次数。
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 过期时间。
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # 最近一次使用者。
    used_by: Mapped[UUID | None] = mapped_column()
    # 最近一次使用时间。
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
