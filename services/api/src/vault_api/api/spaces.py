"""空间接口。"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthorizationError
from vault_api.db.session import get_db
from vault_api.dependencies import get_current_actor
from vault_api.models.enums import AuditAction, SpaceType
from vault_api.models.space import Space
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.space import SpaceCreateRequest, SpaceData
from vault_api.services.audit import record_activity
from vault_api.services.authorization import Actor, accessible_spaces_condition
from vault_api.services.container import AppServices, get_services
from vault_api.services.query import execute_with_cache
from vault_api.utils.response import success

router = APIRouter(prefix="/spaces", tags=["spaces"])


def space_payload(space: Space) -> dict:
    return SpaceData.model_validate(space).model_dump(mode="json")


@router.get(
    "",
    summary="查询可访问空间",
    description="返回调用方可读的个人空间与公共空间，结果按用户缓存。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[SpaceData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_spaces(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """查询可访问空间。"""

    def _compute() -> list[dict]:
        stmt = (
            select(Space)
            .where(accessible_spaces_condition(actor))
            .order_by(Space.type.desc(), Space.name.asc(), Space.id)
        )
        return [space_payload(space) for space in db.execute(stmt).scalars().all()]

    key = services.cache.generate_key("spaces", {"userId": str(actor.id), "role": actor.role})
    data = execute_with_cache(
        services.cache,
        services.monitor,
        key,
        _compute,
        ttl=services.settings.cache_spaces_ttl_seconds,
        tags=[actor.cache_tag, "spaces"],
    )
    return success(request, data)


@router.post(
    "",
    summary="创建空间",
    description="任何已审核用户可创建个人空间；公共空间仅管理员可创建。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SpaceData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def create_space(
    payload: SpaceCreateRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """创建空间。"""
    if payload.type == SpaceType.COMMON and not actor.is_admin:
        raise AuthorizationError("Only admins can create common spaces")

    space = Space(
        name=payload.name,
        description=payload.description,
        type=payload.type,
        owner_id=actor.id if payload.type == SpaceType.PERSONAL else None,
        is_public=payload.is_public if payload.type == SpaceType.COMMON else False,
        created_by=actor.id,
    )
    db.add(space)
    db.flush()
    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.SPACE_CREATED,
        resource_type="space",
        resource_id=space.id,
        details={"name": space.name, "type": space.type},
    )
    db.commit()
    db.refresh(space)
    services.cache.invalidate_by_tag("spaces")
    return success(request, space_payload(space), message="Space created successfully")
