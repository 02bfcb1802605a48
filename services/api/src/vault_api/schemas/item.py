"""条目、修订与编辑请求结构。"""

from datetime import datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, HttpUrl, StringConstraints, field_validator

from vault_api.models.enums import ItemType
from vault_api.schemas.common import BaseSchema
from vault_api.services.validation import sanitize_optional, sanitize_string, sanitize_tags

CONTENT_MAX_LENGTH = 100_000

TagText = Annotated[str, StringConstraints(max_length=50)]


class _ItemFields(BaseModel):
    """条目写入字段的公共清洗规则。"""

    @field_validator("title", check_fields=False)
    @classmethod
    def clean_title(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = sanitize_string(value, 200)
        if not cleaned:
            raise ValueError("Title is required")
        return cleaned

    @field_validator("excerpt", check_fields=False)
    @classmethod
    def clean_excerpt(cls, value: str | None) -> str | None:
        return sanitize_optional(value, 500)

    @field_validator("content", check_fields=False)
    @classmethod
    def clean_content(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip()

    @field_validator("tags", check_fields=False)
    @classmethod
    def clean_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return sanitize_tags(value)


class ItemCreateRequest(_ItemFields):
    """条目创建请求。"""

    title: str = Field(min_length=1, max_length=200, description="标题。")
    content: str | None = Field(default=None, max_length=CONTENT_MAX_LENGTH, description="正文。")
    url: HttpUrl | None = Field(default=None, description="来源链接。")
    excerpt: str | None = Field(default=None, max_length=500, description="摘要。")
    type: ItemType = Field(default=ItemType.BOOKMARK, description="条目类型。")
    tags: list[TagText] = Field(default_factory=list, max_length=20, description="标签，最多 20 个。")
    category_id: UUID | None = Field(default=None, description="分类 ID。")
    space_id: UUID = Field(description="目标空间 ID。")
    html_snapshot: str | None = Field(default=None, description="网页快照，入库前会清洗。")
    reason: str | None = Field(default=None, max_length=500, description="提交到公共空间时的说明。")


class ItemUpdateRequest(_ItemFields):
    """条目更新请求，仅更新提供的字段。"""

    title: str | None = Field(default=None, min_length=1, max_length=200, description="标题。")
    content: str | None = Field(default=None, max_length=CONTENT_MAX_LENGTH, description="正文。")
    url: HttpUrl | None = Field(default=None, description="来源链接。")
    excerpt: str | None = Field(default=None, max_length=500, description="摘要。")
    type: ItemType | None = Field(default=None, description="条目类型。")
    tags: list[TagText] | None = Field(default=None, max_length=20, description="标签。")
    category_id: UUID | None = Field(default=None, description="分类 ID。")
    is_favorite: bool | None = Field(default=None, description="是否收藏。")
    reason: str | None = Field(default=None, max_length=500, description="提交审核时的说明。")


class SnapshotRequest(BaseModel):
    """网页快照采集请求。"""

    url: HttpUrl = Field(description="页面地址。")
    html: str = Field(min_length=1, description="页面原始 HTML。")
    title: str | None = Field(default=None, max_length=200, description="标题，缺省时从页面提取。")
    excerpt: str | None = Field(default=None, max_length=500, description="摘要，缺省时从页面提取。")
    space_id: UUID = Field(description="目标空间 ID。")
    category_id: UUID | None = Field(default=None, description="分类 ID。")
    tags: list[TagText] = Field(default_factory=list, max_length=20, description="标签。")

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return sanitize_tags(value)


class RevertRequest(BaseModel):
    """回滚请求。"""

    revisionId: UUID = Field(description="目标修订 ID。")


class ReviewRequest(BaseModel):
    """审核备注。"""

    note: str | None = Field(default=None, max_length=500, description="审核备注。")


class ItemData(BaseSchema):
    """条目数据。"""

    id: UUID
    space_id: UUID
    category_id: UUID | None = None
    title: str
    content: str | None = None
    url: str | None = None
    excerpt: str | None = None
    type: str
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = False
    html_snapshot: str | None = None
    created_by: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RevisionData(BaseSchema):
    """修订数据。"""

    id: UUID
    item_id: UUID
    version: int
    title: str
    content: str | None = None
    tags: list[str] = Field(default_factory=list)
    changed_fields: list[str] = Field(default_factory=list)
    note: str | None = None
    created_by: UUID
    created_at: datetime | None = None


class EditRequestData(BaseSchema):
    """编辑请求数据。"""

    id: UUID
    item_id: UUID | None = None
    space_id: UUID
    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    reason: str | None = None
    requested_by: UUID
    status: str
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_note: str | None = None
    created_at: datetime | None = None


class ItemWriteData(BaseSchema):
    """写入结果：直接写入返回条目，审核写入返回编辑请求。"""

    mode: Literal["direct", "moderated"] = Field(description="写入方式。")
    item: ItemData | None = Field(default=None, description="写入后的条目。")
    revision: RevisionData | None = Field(default=None, description="本次生成的修订。")
    edit_request: EditRequestData | None = Field(default=None, description="待审核的编辑请求。")


class ReviewResultData(BaseSchema):
    """审核结果。"""

    edit_request: EditRequestData
    item: ItemData | None = None
    revision: RevisionData | None = None
