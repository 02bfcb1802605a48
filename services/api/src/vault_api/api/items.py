"""条目接口。

写入规则：个人空间所有者与管理员直接写入并生成修订；
非管理员写公共空间只生成待审核编辑请求。
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthorizationError
from vault_api.db.session import get_db
from vault_api.dependencies import get_current_actor
from vault_api.models.base import utc_now
from vault_api.models.enums import AuditAction, ItemType
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.item import (
    ItemCreateRequest,
    ItemData,
    ItemUpdateRequest,
    ItemWriteData,
    RevertRequest,
    RevisionData,
    SnapshotRequest,
)
from vault_api.services.audit import record_activity
from vault_api.services.authorization import Actor, WriteMode, load_space, resolve_write_mode
from vault_api.services.container import AppServices, get_services
from vault_api.services.html import extract_metadata, sanitize_html
from vault_api.services.items import (
    get_readable_item,
    invalidate_item_caches,
    item_payload,
    list_items,
    revision_payload,
    write_item_update,
    write_new_item,
)
from vault_api.services.moderation import DEFAULT_CAPTURE_REASON, list_revisions, revert_item
from vault_api.utils.response import page_meta, success

router = APIRouter(prefix="/items", tags=["items"])

ITEM_CREATED_MESSAGE = "Item created successfully"
EDIT_REQUEST_MESSAGE = "Edit request created for admin approval"
# 更新时不允许置空的字段。
_NON_NULLABLE_FIELDS = ("title", "type", "tags", "is_favorite")


def _record_write(
    db: Session,
    request: Request,
    *,
    actor: Actor,
    result: dict[str, Any],
    item_action: AuditAction,
    details: dict[str, Any],
) -> None:
    if result["mode"] == WriteMode.MODERATED:
        edit_request = result["edit_request"]
        record_activity(
            db,
            request,
            user_id=actor.id,
            action=AuditAction.EDIT_REQUEST_CREATED,
            resource_type="edit_request",
            resource_id=edit_request["id"],
            details={**details, "item_id": edit_request["item_id"]},
        )
        return
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=item_action,
        resource_type="item",
        resource_id=result["item"]["id"],
        details=details,
    )


def _finish_write(
    db: Session,
    request: Request,
    services: AppServices,
    result: dict[str, Any],
    *,
    direct_message: str,
):
    db.commit()
    if result["mode"] == WriteMode.DIRECT:
        invalidate_item_caches(services.cache)
        return success(request, result, message=direct_message)
    return success(request, result, message=EDIT_REQUEST_MESSAGE)


@router.get(
    "",
    summary="分页查询条目",
    description="返回调用方可读空间内的未删除条目，按创建时间倒序，结果按用户与参数缓存。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[ItemData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_items(
    request: Request,
    space_id: UUID | None = Query(default=None, description="空间 ID。"),
    category_id: UUID | None = Query(default=None, description="分类 ID。"),
    item_type: ItemType | None = Query(default=None, alias="type", description="条目类型。"),
    limit: int = Query(default=20, ge=1, le=100, description="每页条数。"),
    offset: int = Query(default=0, ge=0, description="起始偏移。"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """分页查询条目。"""
    settings = services.settings
    result = list_items(
        db,
        actor=actor,
        cache=services.cache,
        monitor=services.monitor,
        space_id=space_id,
        category_id=category_id,
        item_type=item_type,
        limit=limit,
        offset=offset,
        ttl=settings.cache_items_ttl_seconds,
        spaces_ttl=settings.cache_spaces_ttl_seconds,
    )
    return success(
        request,
        result["items"],
        meta=page_meta(total=result["total"], offset=offset, limit=limit),
    )


@router.post(
    "",
    summary="创建条目",
    description="个人空间或管理员直接创建并生成首条修订；非管理员写公共空间时生成待审核编辑请求。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ItemWriteData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def create_item(
    payload: ItemCreateRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """创建条目。"""
    space = load_space(db, payload.space_id)
    values = payload.model_dump(mode="json", exclude={"space_id", "reason"})
    if values.get("html_snapshot"):
        values["html_snapshot"] = sanitize_html(values["html_snapshot"])

    result = write_new_item(db, actor=actor, space=space, values=values, reason=payload.reason)
    _record_write(
        db,
        request,
        actor=actor,
        result=result,
        item_action=AuditAction.ITEM_CREATED,
        details={"title": payload.title, "space_id": str(space.id), "type": payload.type},
    )
    return _finish_write(db, request, services, result, direct_message=ITEM_CREATED_MESSAGE)


@router.post(
    "/snapshot",
    summary="采集网页快照",
    description="清洗页面 HTML 并提取标题与摘要后保存为书签条目，公共空间同样走审核流程。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ItemWriteData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def capture_snapshot(
    payload: SnapshotRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """采集网页快照。"""
    space = load_space(db, payload.space_id)
    url = str(payload.url)
    metadata = extract_metadata(payload.html, url)
    values = {
        "title": (payload.title or metadata["title"] or url).strip()[:200],
        "url": url,
        "excerpt": payload.excerpt or metadata["excerpt"],
        "html_snapshot": sanitize_html(payload.html),
        "type": ItemType.BOOKMARK,
        "tags": payload.tags,
        "category_id": str(payload.category_id) if payload.category_id else None,
    }
    result = write_new_item(db, actor=actor, space=space, values=values, reason=DEFAULT_CAPTURE_REASON)
    _record_write(
        db,
        request,
        actor=actor,
        result=result,
        item_action=AuditAction.ITEM_CREATED,
        details={"title": values["title"], "url": url, "space_id": str(space.id), "source": "snapshot"},
    )
    return _finish_write(db, request, services, result, direct_message="Snapshot saved successfully")


@router.get(
    "/{item_id}",
    summary="查询条目详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ItemData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_item(
    item_id: UUID,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """查询条目详情。"""
    item, _space = get_readable_item(db, actor=actor, item_id=item_id)
    return success(request, item_payload(item))


@router.patch(
    "/{item_id}",
    summary="更新条目",
    description="仅更新提供的字段；有实际变化时追加修订。非管理员更新公共空间条目时生成编辑请求。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ItemWriteData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_item(
    item_id: UUID,
    payload: ItemUpdateRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """更新条目。"""
    item, space = get_readable_item(db, actor=actor, item_id=item_id)
    changes = payload.model_dump(mode="json", exclude_unset=True, exclude={"reason"})
    for field in _NON_NULLABLE_FIELDS:
        if field in changes and changes[field] is None:
            changes.pop(field)

    result = write_item_update(db, actor=actor, item=item, space=space, changes=changes, reason=payload.reason)
    _record_write(
        db,
        request,
        actor=actor,
        result=result,
        item_action=AuditAction.ITEM_UPDATED,
        details={"fields": sorted(changes), "space_id": str(space.id)},
    )
    message = "Item updated successfully"
    if result["mode"] == WriteMode.DIRECT and result["revision"] is None:
        message = "No changes detected"
    return _finish_write(db, request, services, result, direct_message=message)


@router.delete(
    "/{item_id}",
    summary="删除条目",
    description="逻辑删除条目；公共空间条目仅管理员可删除。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ItemData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def delete_item(
    item_id: UUID,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """删除条目。"""
    item, space = get_readable_item(db, actor=actor, item_id=item_id)
    if resolve_write_mode(actor, space) != WriteMode.DIRECT:
        raise AuthorizationError("Only admins can delete items in common spaces")

    item.deleted_at = utc_now()
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.ITEM_DELETED,
        resource_type="item",
        resource_id=item.id,
        details={"title": item.title, "space_id": str(space.id)},
    )
    db.commit()
    db.refresh(item)
    invalidate_item_caches(services.cache)
    return success(request, item_payload(item), message="Item deleted successfully")


@router.get(
    "/{item_id}/revisions",
    summary="查询修订历史",
    description="按新到旧返回条目的全部修订。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[RevisionData]],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_revisions(
    item_id: UUID,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """查询修订历史。"""
    item, _space = get_readable_item(db, actor=actor, item_id=item_id)
    revisions = list_revisions(db, item.id)
    return success(request, [revision_payload(revision) for revision in revisions])


@router.post(
    "/{item_id}/revert",
    summary="回滚到指定修订",
    description="将目标修订内容写回条目并追加一条新修订，历史修订不会被改写。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ItemWriteData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def revert(
    item_id: UUID,
    payload: RevertRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """回滚条目。"""
    item, space = get_readable_item(db, actor=actor, item_id=item_id)
    if resolve_write_mode(actor, space) != WriteMode.DIRECT:
        raise AuthorizationError("Only admins can revert items in common spaces")

    item, revision = revert_item(db, item=item, revision_id=payload.revisionId, actor=actor)
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.ITEM_RESTORED,
        resource_type="item",
        resource_id=item.id,
        details={"revision_id": str(payload.revisionId), "version": revision.version},
    )
    db.commit()
    db.refresh(item)
    invalidate_item_caches(services.cache)
    data = {"mode": WriteMode.DIRECT.value, "item": item_payload(item), "revision": revision_payload(revision)}
    return success(request, data, message="Item reverted successfully")
