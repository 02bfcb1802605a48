"""用户管理与邀请码结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from vault_api.models.enums import UserRole
from vault_api.schemas.auth import UserProfileData
from vault_api.schemas.common import BaseSchema


class UserApproveRequest(BaseModel):
    """审核单个用户。"""

    userId: UUID = Field(description="待审核用户 ID。")


class UserBulkApproveRequest(BaseModel):
    """批量审核用户。"""

    userIds: list[UUID] = Field(min_length=1, max_length=100, description="待审核用户 ID 列表，最多 100 个。")


class UserSuspendRequest(BaseModel):
    """停用用户。"""

    userId: UUID = Field(description="待停用用户 ID。")


class UserRoleRequest(BaseModel):
    """变更用户角色。"""

    userId: UUID = Field(description="目标用户 ID。")
    role: UserRole = Field(description="新角色。")


class BulkApproveData(BaseSchema):
    """批量审核结果。"""

    approved_count: int = Field(description="本次实际审核通过的用户数。")
    users: list[UserProfileData] = Field(default_factory=list, description="本次审核通过的用户。")


class InviteCreateRequest(BaseModel):
    """邀请码生成请求。"""

    max_uses: int = Field(default=1, ge=1, le=100, description="最大使用次数。")
    expires_in_days: int = Field(default=7, ge=1, le=365, description="有效天数。")


class InviteData(BaseSchema):
    """邀请码数据。"""

    id: UUID
    code: str
    created_by: UUID
    max_uses: int
    current_uses: int
    expires_at: datetime
    used_by: UUID | None = None
    used_at: datetime | None = None
    created_at: datetime | None = None
