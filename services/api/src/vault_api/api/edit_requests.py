"""编辑请求接口。

成员查看自己提交的请求；管理员查看全部并审核。
审核按状态条件更新，同一请求重复审核返回 400 且不会修改条目。
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from vault_api.db.session import get_db
from vault_api.dependencies import get_current_actor, require_admin
from vault_api.models.enums import AuditAction, EditRequestStatus
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.item import EditRequestData, ReviewRequest, ReviewResultData
from vault_api.services.audit import record_activity
from vault_api.services.authorization import Actor
from vault_api.services.container import AppServices, get_services
from vault_api.services.items import edit_request_payload, invalidate_item_caches, item_payload, revision_payload
from vault_api.services.moderation import approve_edit_request, list_edit_requests, reject_edit_request
from vault_api.utils.response import page_meta, success

router = APIRouter(prefix="/edit-requests", tags=["edit-requests"])


@router.get(
    "",
    summary="查询编辑请求",
    description="管理员返回全部编辑请求，成员仅返回自己提交的，可按状态过滤。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[EditRequestData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_edit_requests(
    request: Request,
    request_status: EditRequestStatus | None = Query(default=None, alias="status", description="审核状态。"),
    limit: int = Query(default=20, ge=1, le=100, description="每页条数。"),
    offset: int = Query(default=0, ge=0, description="起始偏移。"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """查询编辑请求。"""
    rows, total = list_edit_requests(db, actor=actor, status=request_status, limit=limit, offset=offset)
    return success(
        request,
        [edit_request_payload(row) for row in rows],
        meta=page_meta(total=total, offset=offset, limit=limit),
    )


@router.post(
    "/{request_id}/approve",
    summary="通过编辑请求",
    description="新建提案生成条目，更新提案修改目标条目，均追加修订；已审核的请求返回 400。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ReviewResultData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def approve(
    request_id: UUID,
    request: Request,
    payload: ReviewRequest | None = None,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """通过编辑请求。"""
    note = payload.note if payload else None
    edit_request, item, revision = approve_edit_request(db, request_id=request_id, reviewer=actor, note=note)
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.EDIT_REQUEST_APPROVED,
        resource_type="edit_request",
        resource_id=edit_request.id,
        details={"item_id": str(item.id), "requested_by": str(edit_request.requested_by)},
    )
    db.commit()
    db.refresh(edit_request)
    db.refresh(item)
    invalidate_item_caches(services.cache)
    data = {
        "edit_request": edit_request_payload(edit_request),
        "item": item_payload(item),
        "revision": revision_payload(revision),
    }
    return success(request, data, message="Edit request approved")


@router.post(
    "/{request_id}/reject",
    summary="驳回编辑请求",
    description="仅修改请求状态与审核信息，不触碰条目；已审核的请求返回 400。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ReviewResultData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def reject(
    request_id: UUID,
    request: Request,
    payload: ReviewRequest | None = None,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """驳回编辑请求。"""
    note = payload.note if payload else None
    edit_request = reject_edit_request(db, request_id=request_id, reviewer=actor, note=note)
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.EDIT_REQUEST_REJECTED,
        resource_type="edit_request",
        resource_id=edit_request.id,
        details={"requested_by": str(edit_request.requested_by), "note": note},
    )
    db.commit()
    db.refresh(edit_request)
    return success(request, {"edit_request": edit_request_payload(edit_request)}, message="Edit request rejected")
