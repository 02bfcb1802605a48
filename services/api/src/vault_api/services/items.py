"""条目查询、搜索与写入编排。"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthorizationError, NotFoundError
from vault_api.core.metrics import PerformanceMonitor
from vault_api.models.item import EditRequest, Item, Revision
from vault_api.models.space import Space
from vault_api.schemas.item import EditRequestData, ItemData, RevisionData
from vault_api.services.authorization import (
    Actor,
    WriteMode,
    accessible_space_ids,
    can_read_space,
    load_space,
    resolve_write_mode,
)
from vault_api.services.cache import CacheManager
from vault_api.services.moderation import create_item, submit_edit_request, update_item
from vault_api.services.query import build_query, execute_with_cache


def item_payload(item: Item) -> dict[str, Any]:
    return ItemData.model_validate(item).model_dump(mode="json")


def revision_payload(revision: Revision | None) -> dict[str, Any] | None:
    if revision is None:
        return None
    return RevisionData.model_validate(revision).model_dump(mode="json")


def edit_request_payload(edit_request: EditRequest) -> dict[str, Any]:
    return EditRequestData.model_validate(edit_request).model_dump(mode="json")


def invalidate_item_caches(cache: CacheManager) -> None:
    """条目变更后清理列表与搜索缓存。"""
    cache.invalidate_tags("items", "search")


def get_readable_item(db: Session, *, actor: Actor, item_id: UUID) -> tuple[Item, Space]:
    item = db.get(Item, item_id)
    if item is None or item.deleted_at is not None:
        raise NotFoundError("Item")
    space = load_space(db, item.space_id)
    if not can_read_space(actor, space):
        raise AuthorizationError("Access denied")
    return item, space


def write_new_item(
    db: Session,
    *,
    actor: Actor,
    space: Space,
    values: dict[str, Any],
    reason: str | None = None,
) -> dict[str, Any]:
    """按空间写入规则创建条目，或生成待审核的编辑请求。"""
    mode = resolve_write_mode(actor, space)
    if mode == WriteMode.MODERATED:
        edit_request = submit_edit_request(db, actor=actor, space=space, proposal=values, reason=reason)
        return {"mode": mode.value, "edit_request": edit_request_payload(edit_request)}

    item, revision = create_item(db, actor_id=actor.id, space=space, values=values)
    return {"mode": mode.value, "item": item_payload(item), "revision": revision_payload(revision)}


def write_item_update(
    db: Session,
    *,
    actor: Actor,
    item: Item,
    space: Space,
    changes: dict[str, Any],
    reason: str | None = None,
) -> dict[str, Any]:
    mode = resolve_write_mode(actor, space)
    if mode == WriteMode.MODERATED:
        edit_request = submit_edit_request(
            db, actor=actor, space=space, proposal=changes, item_id=item.id, reason=reason
        )
        return {"mode": mode.value, "edit_request": edit_request_payload(edit_request)}

    item, revision = update_item(db, actor_id=actor.id, item=item, changes=changes)
    return {"mode": mode.value, "item": item_payload(item), "revision": revision_payload(revision)}


def _readable_items_stmt(space_ids: list[UUID]):
    return select(Item).where(Item.deleted_at.is_(None)).where(Item.space_id.in_(space_ids))


def _count(db: Session, stmt) -> int:
    return db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()


def list_items(
    db: Session,
    *,
    actor: Actor,
    cache: CacheManager,
    monitor: PerformanceMonitor,
    space_id: UUID | None = None,
    category_id: UUID | None = None,
    item_type: str | None = None,
    limit: int = 20,
    offset: int = 0,
    ttl: int = 300,
    spaces_ttl: int = 600,
) -> dict[str, Any]:
    """分页列出可读条目，结果按调用方与过滤参数缓存。"""
    filters = {"space_id": space_id, "category_id": category_id, "type": item_type}

    def _compute() -> dict[str, Any]:
        space_ids = accessible_space_ids(db, actor=actor, cache=cache, monitor=monitor, ttl=spaces_ttl)
        if not space_ids:
            return {"items": [], "total": 0}
        base = build_query(_readable_items_stmt(space_ids), Item, filters=filters)
        total = _count(db, base)
        rows = db.execute(base.offset(offset).limit(limit)).scalars().all()
        return {"items": [item_payload(row) for row in rows], "total": total}

    key = cache.generate_key(
        "items",
        {"userId": str(actor.id), **filters, "limit": limit, "offset": offset},
    )
    return execute_with_cache(cache, monitor, key, _compute, ttl=ttl, tags=[actor.cache_tag, "items"])


@dataclass
class SearchParams:
    """搜索参数。"""

    query: str | None = None
    item_type: str | None = None
    space_id: UUID | None = None
    category_id: UUID | None = None
    tags: list[str] = field(default_factory=list)
    date_from: datetime | None = None
    date_to: datetime | None = None
    is_favorite: bool | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    limit: int = 20
    offset: int = 0

    def cache_params(self, user_id: UUID) -> dict[str, Any]:
        return {
            "userId": str(user_id),
            "query": self.query,
            "type": self.item_type,
            "space_id": self.space_id,
            "category_id": self.category_id,
            "tags": self.tags,
            "date_from": self.date_from,
            "date_to": self.date_to,
            "is_favorite": self.is_favorite,
            "sort_by": self.sort_by,
            "sort_order": self.sort_order,
            "limit": self.limit,
            "offset": self.offset,
        }


def _document_vector():
    text = func.concat_ws(" ", Item.title, func.coalesce(Item.content, ""), func.coalesce(Item.excerpt, ""))
    return func.to_tsvector("english", text)


def _apply_text_query(stmt, query: str, dialect: str):
    if dialect == "postgresql":
        return stmt.where(_document_vector().op("@@")(func.websearch_to_tsquery("english", query)))
    pattern = f"%{query}%"
    return stmt.where(or_(Item.title.ilike(pattern), Item.content.ilike(pattern), Item.excerpt.ilike(pattern)))


def _apply_tags_overlap(stmt, tags: list[str], dialect: str):
    if dialect == "postgresql":
        return stmt.where(Item.tags.op("?|")(postgresql.array(tags)))
    # 其余方言按 JSON 文本匹配带引号的标签。
    return stmt.where(or_(*[cast(Item.tags, String).like(f'%"{tag}"%') for tag in tags]))


def search_items(
    db: Session,
    *,
    actor: Actor,
    cache: CacheManager,
    monitor: PerformanceMonitor,
    params: SearchParams,
    ttl: int = 60,
    spaces_ttl: int = 600,
) -> dict[str, Any]:
    """在可读空间内全文检索条目，PostgreSQL 使用全文索引，其余方言退化为模糊匹配。"""
    dialect = db.get_bind().dialect.name

    def _compute() -> dict[str, Any]:
        space_ids = accessible_space_ids(db, actor=actor, cache=cache, monitor=monitor, ttl=spaces_ttl)
        if params.space_id is not None:
            space_ids = [space_id for space_id in space_ids if space_id == params.space_id]
        if not space_ids:
            return {"items": [], "total": 0}

        stmt = _readable_items_stmt(space_ids)
        if params.query:
            stmt = _apply_text_query(stmt, params.query, dialect)
        if params.item_type:
            stmt = stmt.where(Item.type == params.item_type)
        if params.category_id:
            stmt = stmt.where(Item.category_id == params.category_id)
        if params.tags:
            stmt = _apply_tags_overlap(stmt, params.tags, dialect)
        if params.date_from:
            stmt = stmt.where(Item.created_at >= params.date_from)
        if params.date_to:
            stmt = stmt.where(Item.created_at <= params.date_to)
        if params.is_favorite is not None:
            stmt = stmt.where(Item.is_favorite.is_(params.is_favorite))

        total = _count(db, stmt)
        descending = params.sort_order != "asc"
        if params.sort_by == "relevance" and params.query and dialect == "postgresql":
            rank = func.ts_rank(_document_vector(), func.websearch_to_tsquery("english", params.query))
            stmt = stmt.order_by(rank.desc() if descending else rank.asc(), Item.id)
        else:
            order_by = params.sort_by if params.sort_by in {"created_at", "updated_at", "title"} else "created_at"
            stmt = build_query(stmt, Item, order_by=order_by, descending=descending)
        rows = db.execute(stmt.offset(params.offset).limit(params.limit)).scalars().all()
        return {"items": [item_payload(row) for row in rows], "total": total}

    key = cache.generate_key("search", params.cache_params(actor.id))
    return execute_with_cache(
        cache, monitor, key, _compute, ttl=ttl, tags=[actor.cache_tag, "search", "items"]
    )


def readable_items_for_export(
    db: Session,
    *,
    space_ids: list[UUID],
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[tuple[Item, str]]:
    """导出用：返回条目及其空间名称，按创建时间倒序。"""
    stmt = (
        select(Item, Space.name)
        .join(Space, Space.id == Item.space_id)
        .where(Item.deleted_at.is_(None))
        .where(Item.space_id.in_(space_ids))
    )
    if date_from:
        stmt = stmt.where(Item.created_at >= date_from)
    if date_to:
        stmt = stmt.where(Item.created_at <= date_to)
    stmt = stmt.order_by(Item.created_at.desc(), Item.id)
    return [(row[0], row[1]) for row in db.execute(stmt).all()]
