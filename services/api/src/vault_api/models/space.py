"""空间与分类模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vault_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from vault_api.models.enums import SpaceType


class Space(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """条目的命名空间，决定写入权限。"""

    __tablename__ = "spaces"

    # 空间名称。
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 空间描述。
    description: Mapped[str | None] = mapped_column(Text)
    # 空间类型（personal/common）。
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=SpaceType.PERSONAL)
    # 个人空间所有者，公共空间为空。
    owner_id: Mapped[UUID | None] = mapped_column(index=True)
    # 公共空间是否对所有已审核用户可见。
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 创建人用户 ID。
    created_by: Mapped[UUID | None] = mapped_column()
    # 逻辑删除时间。
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Category(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """空间内的条目分类。"""

    __tablename__ = "categories"

    # 所属空间 ID。
    space_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 分类名称。
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 图标标识。
    icon: Mapped[str | None] = mapped_column(String(64))
    # 展示颜色。
    color: Mapped[str | None] = mapped_column(String(16))
    # 创建人用户 ID。
    created_by: Mapped[UUID | None] = mapped_column()
    # 逻辑删除时间。
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
