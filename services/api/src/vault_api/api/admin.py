"""用户管理接口（仅管理员）。"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from vault_api.api.auth import profile_payload
from vault_api.db.session import get_db
from vault_api.dependencies import require_admin
from vault_api.models.enums import AuditAction, UserStatus
from vault_api.models.user import User
from vault_api.schemas.admin import (
    BulkApproveData,
    UserApproveRequest,
    UserBulkApproveRequest,
    UserRoleRequest,
    UserSuspendRequest,
)
from vault_api.schemas.auth import UserProfileData
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.services.accounts import approve_user, approve_users, change_role, list_users, suspend_user
from vault_api.services.audit import record_activity
from vault_api.services.authorization import Actor
from vault_api.services.container import AppServices, get_services
from vault_api.utils.response import page_meta, success

router = APIRouter(prefix="/admin/users", tags=["admin"])

ADMIN_RESPONSES = {400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _invalidate_users(services: AppServices, users: list[User]) -> None:
    """用户状态或角色变化后清理其名下缓存。"""
    services.cache.invalidate_tags(*(f"user:{user.id}" for user in users))


@router.get(
    "",
    summary="查询用户",
    description="按注册时间倒序分页返回用户，可按审核状态过滤。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[UserProfileData]],
    responses={403: {"model": ErrorResponse}},
)
def get_users(
    request: Request,
    user_status: UserStatus | None = Query(default=None, alias="status", description="审核状态。"),
    limit: int = Query(default=20, ge=1, le=100, description="每页条数。"),
    offset: int = Query(default=0, ge=0, description="起始偏移。"),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """查询用户。"""
    users, total = list_users(db, status=user_status, limit=limit, offset=offset)
    return success(
        request,
        [profile_payload(user) for user in users],
        meta=page_meta(total=total, offset=offset, limit=limit),
    )


@router.post(
    "/approve",
    summary="审核通过用户",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserProfileData],
    responses=ADMIN_RESPONSES,
)
def approve(
    payload: UserApproveRequest,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """审核通过用户。"""
    user = approve_user(db, user_id=payload.userId, reviewer_id=actor.id)
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.USER_APPROVED,
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email},
    )
    db.commit()
    db.refresh(user)
    _invalidate_users(services, [user])
    return success(request, profile_payload(user), message="User approved successfully")


@router.post(
    "/bulk-approve",
    summary="批量审核用户",
    description="已通过的用户自动跳过，返回本次实际变更的用户。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BulkApproveData],
    responses=ADMIN_RESPONSES,
)
def bulk_approve(
    payload: UserBulkApproveRequest,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """批量审核用户。"""
    users = approve_users(db, user_ids=payload.userIds, reviewer_id=actor.id)
    for user in users:
        record_activity(
            db,
            request,
            user_id=actor.id,
            action=AuditAction.USER_APPROVED,
            resource_type="user",
            resource_id=user.id,
            details={"email": user.email, "bulk": True},
        )
    db.commit()
    for user in users:
        db.refresh(user)
    _invalidate_users(services, users)
    data = {"approved_count": len(users), "users": [profile_payload(user) for user in users]}
    return success(request, data, message=f"{len(users)} users approved successfully")


@router.post(
    "/suspend",
    summary="停用用户",
    description="停用后该用户所有业务接口返回 403；不能停用自己。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserProfileData],
    responses=ADMIN_RESPONSES,
)
def suspend(
    payload: UserSuspendRequest,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """停用用户。"""
    user = suspend_user(db, user_id=payload.userId, actor_id=actor.id)
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.USER_SUSPENDED,
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email},
    )
    db.commit()
    db.refresh(user)
    _invalidate_users(services, [user])
    return success(request, profile_payload(user), message="User suspended successfully")


@router.post(
    "/role",
    summary="变更用户角色",
    description="管理员不能撤销自己的管理员角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserProfileData],
    responses=ADMIN_RESPONSES,
)
def update_role(
    payload: UserRoleRequest,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """变更用户角色。"""
    user = change_role(db, user_id=payload.userId, role=payload.role, actor_id=actor.id)
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.USER_ROLE_CHANGED,
        resource_type="user",
        resource_id=user.id,
        details={"role": payload.role},
    )
    db.commit()
    db.refresh(user)
    _invalidate_users(services, [user])
    return success(request, profile_payload(user), message="User role updated successfully")
