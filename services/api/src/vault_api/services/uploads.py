"""文件上传与附件管理。

上传按以下顺序执行：
1. 校验类型、大小、魔数与可疑内容。
2. 先写对象存储，再写附件记录。
3. 记录写入或事务提交失败时删除已上传对象（补偿），补偿失败只记日志，原错误继续抛出。
"""

from dataclasses import dataclass
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vault_api.core.errors import AppError, DatabaseError, NotFoundError, ValidationError
from vault_api.models.item import Attachment
from vault_api.services.file_security import (
    generate_secure_filename,
    is_allowed_type,
    max_size_for,
    sanitize_filename,
    scan_for_threats,
    validate_file_content,
)
from vault_api.services.storage import ObjectStorage

logger = logging.getLogger("vault_api.uploads")

FILE_TYPE_FILTERS = ("image", "video", "audio", "document")
FILE_SORT_FIELDS = ("created_at", "original_filename", "file_size", "mime_type")
DOCUMENT_MIME_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
)
MAX_BULK_DELETE = 100


@dataclass
class StoredFile:
    """已写入存储的文件信息。"""

    # 服务端生成的存储文件名。
    filename: str
    # 清洗后的原始文件名。
    original_filename: str
    # 文件类型。
    mime_type: str
    # 文件字节数。
    file_size: int
    # 对象存储路径。
    storage_path: str
    # 公开访问地址。
    public_url: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "original_filename": self.original_filename,
            "mime_type": self.mime_type,
            "file_size": self.file_size,
            "storage_path": self.storage_path,
            "public_url": self.public_url,
        }


def validate_upload(content: bytes, mime_type: str) -> None:
    """按大小、类型、魔数、可疑内容顺序校验上传文件。"""
    max_size = max_size_for(mime_type)
    if len(content) > max_size:
        raise ValidationError(
            f"File too large. Maximum size for {mime_type} is {round(max_size / 1024 / 1024)}MB.",
            context={"max_size": max_size, "size": len(content)},
        )
    if not is_allowed_type(mime_type):
        raise ValidationError("File type not allowed", context={"mime_type": mime_type})
    if not content:
        raise ValidationError("No file provided")
    if not validate_file_content(content, mime_type):
        raise ValidationError("File content doesn't match declared type")
    if not scan_for_threats(content):
        raise ValidationError("File contains suspicious content")


def compensate_upload(storage: ObjectStorage, storage_path: str) -> None:
    """删除已写入的存储对象；删除失败只记日志。"""
    try:
        storage.remove([storage_path])
    except AppError:
        logger.exception("upload compensation failed path=%s", storage_path)


def store_upload(
    db: Session,
    storage: ObjectStorage,
    *,
    uploader_id: UUID,
    original_name: str,
    mime_type: str,
    content: bytes,
    item_id: UUID | None = None,
) -> tuple[Attachment, StoredFile]:
    """写入对象并创建附件记录（由调用方提交事务）。"""
    validate_upload(content, mime_type)

    original_filename = sanitize_filename(original_name or "file")
    filename = generate_secure_filename(original_filename, str(uploader_id))
    storage_path = f"uploads/{uploader_id}/{filename}"
    storage.upload(storage_path, content, content_type=mime_type)

    try:
        attachment = Attachment(
            item_id=item_id,
            filename=filename,
            original_filename=original_filename,
            mime_type=mime_type,
            file_size=len(content),
            storage_path=storage_path,
            uploaded_by=uploader_id,
        )
        db.add(attachment)
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        compensate_upload(storage, storage_path)
        raise DatabaseError("Failed to create attachment record") from exc

    stored = StoredFile(
        filename=filename,
        original_filename=original_filename,
        mime_type=mime_type,
        file_size=len(content),
        storage_path=storage_path,
        public_url=storage.get_public_url(storage_path),
    )
    logger.info("file stored path=%s size=%s type=%s", storage_path, len(content), mime_type)
    return attachment, stored


def _type_condition(file_type: str):
    if file_type == "document":
        return Attachment.mime_type.in_(DOCUMENT_MIME_TYPES)
    return Attachment.mime_type.like(f"{file_type}/%")


def list_files(
    db: Session,
    *,
    uploader_id: UUID,
    search: str | None = None,
    file_type: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> list[Attachment]:
    """列出当前用户上传的文件。"""
    stmt = select(Attachment).where(Attachment.uploaded_by == uploader_id)
    if search:
        stmt = stmt.where(Attachment.original_filename.ilike(f"%{search}%"))
    if file_type in FILE_TYPE_FILTERS:
        stmt = stmt.where(_type_condition(file_type))
    column = getattr(Attachment, sort_by if sort_by in FILE_SORT_FIELDS else "created_at")
    stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), Attachment.id)
    return list(db.execute(stmt).scalars().all())


def bulk_delete_files(
    db: Session,
    storage: ObjectStorage,
    *,
    uploader_id: UUID,
    file_ids: list[UUID],
) -> int:
    """删除当前用户上传的文件：先删存储对象，再删记录，返回删除数量。"""
    files = (
        db.execute(
            select(Attachment)
            .where(Attachment.id.in_(file_ids))
            .where(Attachment.uploaded_by == uploader_id)
        )
        .scalars()
        .all()
    )
    if not files:
        raise NotFoundError("Files", context={"reason": "no files found or access denied"})

    storage.remove([file.storage_path for file in files])
    db.execute(
        delete(Attachment)
        .where(Attachment.id.in_([file.id for file in files]))
        .where(Attachment.uploaded_by == uploader_id)
        .execution_options(synchronize_session=False)
    )
    return len(files)


def attachments_for_items(db: Session, item_ids: list[UUID]) -> dict[UUID, list[Attachment]]:
    """按条目聚合附件，供导出使用。"""
    if not item_ids:
        return {}
    rows = (
        db.execute(
            select(Attachment)
            .where(Attachment.item_id.in_(item_ids))
            .order_by(Attachment.created_at.asc(), Attachment.id)
        )
        .scalars()
        .all()
    )
    grouped: dict[UUID, list[Attachment]] = {}
    for row in rows:
        grouped.setdefault(row.item_id, []).append(row)
    return grouped
