"""文件上传与管理接口。"""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthorizationError, DatabaseError, ValidationError
from vault_api.db.session import get_db
from vault_api.dependencies import get_current_actor
from vault_api.models.enums import AuditAction, SpaceType
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.file import AttachmentData, BulkDeleteData, BulkDeleteRequest, UploadData
from vault_api.services.audit import record_activity
from vault_api.services.authorization import Actor, load_space
from vault_api.services.container import AppServices, get_services
from vault_api.services.items import get_readable_item
from vault_api.services.uploads import bulk_delete_files, compensate_upload, list_files, store_upload
from vault_api.utils.response import success

router = APIRouter(tags=["files"])


def attachment_payload(attachment) -> dict:
    return AttachmentData.model_validate(attachment).model_dump(mode="json")


@router.post(
    "/upload",
    summary="上传文件",
    description=(
        "multipart 上传：校验类型白名单、大小上限、文件头魔数与可疑内容后写入存储，"
        "再创建附件记录；记录写入失败时删除已上传对象。"
    ),
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UploadData],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
def upload(
    request: Request,
    file: UploadFile | None = File(default=None, description="待上传文件。"),
    item_id: UUID | None = Form(default=None, description="关联条目 ID。"),
    space_id: UUID | None = Form(default=None, description="目标空间 ID。"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """上传文件。"""
    if file is None:
        raise ValidationError("No file provided")

    if space_id is not None:
        space = load_space(db, space_id)
        if space.type == SpaceType.PERSONAL and space.owner_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Access denied")
    if item_id is not None:
        get_readable_item(db, actor=actor, item_id=item_id)

    content = file.file.read()
    mime_type = file.content_type or "application/octet-stream"
    attachment, stored = store_upload(
        db,
        services.storage,
        uploader_id=actor.id,
        original_name=file.filename or "file",
        mime_type=mime_type,
        content=content,
        item_id=item_id,
    )
    try:
        record_activity(
            db,
            request,
            user_id=actor.id,
            action=AuditAction.FILE_UPLOADED,
            resource_type="attachment",
            resource_id=attachment.id,
            details={
                "original_filename": stored.original_filename,
                "secure_filename": stored.filename,
                "size": stored.file_size,
                "type": stored.mime_type,
                "item_id": str(item_id) if item_id else None,
                "space_id": str(space_id) if space_id else None,
            },
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        compensate_upload(services.storage, stored.storage_path)
        raise DatabaseError("Failed to create attachment record") from exc
    db.refresh(attachment)
    return success(
        request,
        {"attachment": attachment_payload(attachment), "file": stored.as_dict()},
        message="File uploaded successfully",
    )


@router.get(
    "/files",
    summary="查询我的文件",
    description="返回当前用户上传的文件，可按原始文件名搜索、按类别过滤并排序。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[AttachmentData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_files(
    request: Request,
    search: str | None = Query(default=None, max_length=255, description="原始文件名关键字。"),
    file_type: Literal["image", "video", "audio", "document"] | None = Query(
        default=None, alias="type", description="文件类别。"
    ),
    sort_by: Literal["created_at", "original_filename", "file_size", "mime_type"] = Query(
        default="created_at", description="排序字段。"
    ),
    sort_order: Literal["asc", "desc"] = Query(default="desc", description="排序方向。"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """查询我的文件。"""
    files = list_files(
        db,
        uploader_id=actor.id,
        search=search,
        file_type=file_type,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success(request, [attachment_payload(file) for file in files], meta={"total": len(files)})


@router.post(
    "/files/bulk-delete",
    summary="批量删除文件",
    description="仅能删除自己上传的文件：先删除存储对象，再删除附件记录。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BulkDeleteData],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
def bulk_delete(
    payload: BulkDeleteRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """批量删除文件。"""
    deleted_count = bulk_delete_files(db, services.storage, uploader_id=actor.id, file_ids=payload.file_ids)
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.BULK_DELETE,
        resource_type="files",
        details={"deleted_count": deleted_count},
    )
    db.commit()
    return success(request, {"deleted_count": deleted_count}, message="Files deleted successfully")
