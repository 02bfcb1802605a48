"""空间结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from vault_api.models.enums import SpaceType
from vault_api.schemas.common import BaseSchema
from vault_api.services.validation import sanitize_optional, sanitize_string


class SpaceCreateRequest(BaseModel):
    """空间创建请求，仅管理员可创建公共空间。"""

    name: str = Field(min_length=1, max_length=128, description="空间名称。")
    description: str | None = Field(default=None, max_length=1000, description="空间描述。")
    type: SpaceType = Field(default=SpaceType.PERSONAL, description="空间类型。")
    is_public: bool = Field(default=False, description="公共空间是否对所有已审核用户可见。")

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: str) -> str:
        cleaned = sanitize_string(value, 128)
        if not cleaned:
            raise ValueError("Name is required")
        return cleaned

    @field_validator("description")
    @classmethod
    def clean_description(cls, value: str | None) -> str | None:
        return sanitize_optional(value)


class SpaceData(BaseSchema):
    """空间数据。"""

    id: UUID
    name: str
    description: str | None = None
    type: str
    owner_id: UUID | None = None
    is_public: bool = False
    created_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
