"""条目域模型。

包含条目、修订历史、编辑请求与附件。
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vault_api.models.base import Base, CreatedAtMixin, JSONType, TimestampMixin, UUIDPrimaryKeyMixin
from vault_api.models.enums import EditRequestStatus, ItemType


class Item(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """知识条目。"""

    __tablename__ = "items"

    # 所属空间 ID。
    space_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 可选分类 ID。
    category_id: Mapped[UUID | None] = mapped_column(index=True)
    # 标题。
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    # 正文内容。
    content: Mapped[str | None] = mapped_column(Text)
    # 来源链接。
    url: Mapped[str | None] = mapped_column(String(2048))
    # 经过清洗的网页快照。
    html_snapshot: Mapped[str | None] = mapped_column(Text)
    # 摘要。
    excerpt: Mapped[str | None] = mapped_column(String(500))
    # 条目类型（bookmark/note/file/snippet）。
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=ItemType.BOOKMARK)
    # 标签列表（小写、去重、有序）。
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    # 是否收藏。
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 创建人用户 ID。
    created_by: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 逻辑删除时间。
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Revision(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """条目内容的不可变历史快照，最新一条与条目当前值一致。"""

    __tablename__ = "revisions"
    __table_args__ = (UniqueConstraint("item_id", "version", name="uk_revision_item_version"),)

    # 所属条目 ID。
    item_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 条目内递增版本号。
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    # 标题快照。
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    # 正文快照。
    content: Mapped[str | None] = mapped_column(Text)
    # 标签快照。
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    # 本次变更涉及的字段。
    changed_fields: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    # 变更说明，例如回滚来源。
    note: Mapped[str | None] = mapped_column(String(500))
    # 修订创建人。
    created_by: Mapped[UUID] = mapped_column(nullable=False)


class EditRequest(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """公共空间写入提案，等待管理员审核。"""

    __tablename__ = "edit_requests"

    # 目标条目 ID，为空表示新建提案。
    item_id: Mapped[UUID | None] = mapped_column(index=True)
    # 目标空间 ID。
    space_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 提议的标题。
    title: Mapped[str | None] = mapped_column(String(200))
    # 提议的正文。
    content: Mapped[str | None] = mapped_column(Text)
    # 提议的标签。
    tags: Mapped[list[str] | None] = mapped_column(JSONType)
    # 新建提案附带的其余字段（url/excerpt/type/html_snapshot/category_id）。
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    # 提案理由。
    reason: Mapped[str | None] = mapped_column(String(500))
    # 提案人。
    requested_by: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 审核状态（pending/approved/rejected）。
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=EditRequestStatus.PENDING, index=True
    )
    # 审核人。
    reviewed_by: Mapped[UUID | None] = mapped_column()
    # 审核时间。
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # 审核备注。
    review_note: Mapped[str | None] = mapped_column(String(500))


class Attachment(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """上传文件元数据。"""

    __tablename__ = "attachments"

    # 关联条目 ID，可为空。
    item_id: Mapped[UUID | None] = mapped_column(index=True)
    # 服务端生成的存储文件名。
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    # 清洗后的原始文件名。
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    # 文件类型。
    mime_type: Mapped[str] = mapped_column(String(128), nullable=False)
    # 文件字节数。
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # 对象存储路径。
    storage_path: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    # 上传人。
    uploaded_by: Mapped[UUID] = mapped_column(nullable=False, index=True)
