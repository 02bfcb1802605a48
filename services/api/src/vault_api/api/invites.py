"""邀请码接口（仅管理员）。"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from vault_api.db.session import get_db
from vault_api.dependencies import require_admin
from vault_api.models.enums import AuditAction
from vault_api.models.user import InviteCode
from vault_api.schemas.admin import InviteCreateRequest, InviteData
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.services.accounts import generate_invite, list_invites
from vault_api.services.audit import record_activity
from vault_api.services.authorization import Actor
from vault_api.utils.response import success

router = APIRouter(prefix="/admin/invites", tags=["admin"])


def invite_payload(invite: InviteCode) -> dict:
    return InviteData.model_validate(invite).model_dump(mode="json")


@router.post(
    "",
    summary="生成邀请码",
    description="生成 8 位大写字母数字邀请码，可设置最大使用次数与有效天数。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[InviteData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def create_invite(
    request: Request,
    payload: InviteCreateRequest | None = None,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """生成邀请码。"""
    payload = payload or InviteCreateRequest()
    invite = generate_invite(
        db,
        created_by=actor.id,
        max_uses=payload.max_uses,
        expires_in_days=payload.expires_in_days,
    )
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.INVITE_CODE_GENERATED,
        resource_type="invite_code",
        resource_id=invite.id,
        details={"max_uses": payload.max_uses, "expires_in_days": payload.expires_in_days},
    )
    db.commit()
    db.refresh(invite)
    return success(request, invite_payload(invite), message="Invite code generated successfully")


@router.get(
    "",
    summary="查询邀请码",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[InviteData]],
    responses={403: {"model": ErrorResponse}},
)
def get_invites(
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """查询邀请码。"""
    invites = list_invites(db)
    return success(request, [invite_payload(invite) for invite in invites], meta={"total": len(invites)})
