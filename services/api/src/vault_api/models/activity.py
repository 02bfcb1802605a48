"""操作日志模型。"""

from typing import Any
from uuid import UUID

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vault_api.models.base import Base, CreatedAtMixin, JSONType, UUIDPrimaryKeyMixin


class ActivityLog(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """只追加的用户操作审计记录。"""

    __tablename__ = "activity_logs"

    # 操作人用户 ID，系统动作可为空。
    user_id: Mapped[UUID | None] = mapped_column(index=True)
    # 动作标识，取值见 AuditAction。
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # 资源类型，例如 item/space/user。
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False)
    # 资源标识（通常为字符串化 UUID）。
    resource_id: Mapped[str | None] = mapped_column(String(128))
    # 动作细节。
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    # 客户端 IP。
    ip_address: Mapped[str | None] = mapped_column(String(64))
    # 客户端 User-Agent。
    user_agent: Mapped[str | None] = mapped_column(Text)
    # 请求追踪 ID。
    request_id: Mapped[str | None] = mapped_column(String(64))
