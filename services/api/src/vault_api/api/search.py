"""检索接口。"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from vault_api.core.errors import ValidationError
from vault_api.db.session import get_db
from vault_api.dependencies import get_current_actor
from vault_api.models.enums import ItemType
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.item import ItemData
from vault_api.services.authorization import Actor
from vault_api.services.container import AppServices, get_services
from vault_api.services.items import SearchParams, search_items
from vault_api.services.validation import sanitize_optional, split_tags
from vault_api.utils.response import page_meta, success

router = APIRouter(prefix="/search", tags=["search"])


@router.get(
    "",
    summary="检索条目",
    description=(
        "在调用方可读空间内检索条目：关键字全文匹配，可按类型、空间、分类、标签（任一命中）、"
        "创建时间与收藏过滤；结果按用户与参数缓存 60 秒。"
    ),
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[ItemData]],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def search(
    request: Request,
    q: str | None = Query(default=None, max_length=1000, description="检索关键字。"),
    item_type: ItemType | None = Query(default=None, alias="type", description="条目类型。"),
    space_id: UUID | None = Query(default=None, description="空间 ID。"),
    category_id: UUID | None = Query(default=None, description="分类 ID。"),
    tags: str | None = Query(default=None, description="逗号分隔的标签。"),
    date_from: datetime | None = Query(default=None, description="创建时间下限。"),
    date_to: datetime | None = Query(default=None, description="创建时间上限。"),
    is_favorite: bool | None = Query(default=None, description="是否收藏。"),
    sort_by: Literal["created_at", "updated_at", "title", "relevance"] = Query(
        default="created_at", description="排序字段。"
    ),
    sort_order: Literal["asc", "desc"] = Query(default="desc", description="排序方向。"),
    limit: int = Query(default=20, ge=1, le=100, description="每页条数。"),
    offset: int = Query(default=0, ge=0, description="起始偏移。"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """检索条目。"""
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must not be later than date_to")

    params = SearchParams(
        query=sanitize_optional(q),
        item_type=item_type,
        space_id=space_id,
        category_id=category_id,
        tags=split_tags(tags),
        date_from=date_from,
        date_to=date_to,
        is_favorite=is_favorite,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    result = search_items(
        db,
        actor=actor,
        cache=services.cache,
        monitor=services.monitor,
        params=params,
        ttl=services.settings.cache_search_ttl_seconds,
        spaces_ttl=services.settings.cache_spaces_ttl_seconds,
    )
    meta = page_meta(total=result["total"], offset=offset, limit=limit)
    meta["query"] = params.query
    return success(request, result["items"], meta=meta)
