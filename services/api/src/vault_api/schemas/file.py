"""文件与附件结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from vault_api.schemas.common import BaseSchema


class AttachmentData(BaseSchema):
    """附件记录。"""

    id: UUID
    item_id: UUID | None = None
    filename: str
    original_filename: str
    mime_type: str
    file_size: int
    storage_path: str
    uploaded_by: UUID
    created_at: datetime | None = None


class StoredFileData(BaseSchema):
    """已写入存储的文件信息。"""

    filename: str = Field(description="服务端生成的存储文件名。")
    original_filename: str = Field(description="清洗后的原始文件名。")
    mime_type: str = Field(description="文件类型。")
    file_size: int = Field(description="文件字节数。")
    storage_path: str = Field(description="对象存储路径。")
    public_url: str = Field(description="公开访问地址。")


class UploadData(BaseSchema):
    """上传结果。"""

    attachment: AttachmentData = Field(description="附件记录。")
    file: StoredFileData = Field(description="存储信息。")


class BulkDeleteRequest(BaseModel):
    """批量删除文件。"""

    file_ids: list[UUID] = Field(min_length=1, max_length=100, description="待删除文件 ID 列表。")


class BulkDeleteData(BaseSchema):
    """批量删除结果。"""

    deleted_count: int = Field(description="实际删除的文件数。")
