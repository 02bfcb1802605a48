"""编辑请求审核与修订历史。

写入路径：
1. 个人空间所有者或管理员：直接写条目，同事务追加修订。
2. 非管理员写公共空间：仅创建 pending 编辑请求，不触碰条目。
3. 管理员审核：按状态条件更新（WHERE status = 'pending'），影响行数为 0 说明已被审核，
   直接拒绝且不修改条目；通过时新建或更新条目并追加修订。
修订只追加不修改，回滚也会生成一条新修订。
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from vault_api.core.errors import NotFoundError, ValidationError
from vault_api.models.base import utc_now
from vault_api.models.enums import EditRequestStatus, ItemType
from vault_api.models.item import EditRequest, Item, Revision
from vault_api.models.space import Space
from vault_api.services.authorization import Actor

logger = logging.getLogger("vault_api.moderation")

# 修订快照记录的字段。
REVISION_FIELDS = ("title", "content", "tags")
# 允许通过写入/提案修改的条目字段。
ITEM_FIELDS = ("title", "content", "url", "excerpt", "type", "tags", "category_id", "html_snapshot", "is_favorite")
# 编辑请求中单独存列的字段，其余字段放入 payload。
_PROPOSAL_COLUMNS = ("title", "content", "tags")

DEFAULT_CREATE_REASON = "New item submission"
DEFAULT_UPDATE_REASON = "Item update"
DEFAULT_CAPTURE_REASON = "Web content capture"


def _normalize_value(field: str, value: Any) -> Any:
    if field == "category_id" and value is not None:
        return UUID(str(value))
    if field == "tags" and value is None:
        return []
    return value


def _comparable(value: Any) -> Any:
    return str(value) if isinstance(value, UUID) else value


def diff_fields(item: Item, changes: dict[str, Any]) -> dict[str, Any]:
    """返回与条目当前值不同的字段。"""
    delta = {}
    for field, value in changes.items():
        if field not in ITEM_FIELDS:
            continue
        normalized = _normalize_value(field, value)
        if _comparable(getattr(item, field)) != _comparable(normalized):
            delta[field] = normalized
    return delta


def next_revision_version(db: Session, item_id: UUID) -> int:
    current = db.execute(select(func.max(Revision.version)).where(Revision.item_id == item_id)).scalar_one()
    return (current or 0) + 1


def record_revision(
    db: Session,
    item: Item,
    *,
    actor_id: UUID,
    changed_fields: list[str],
    note: str | None = None,
) -> Revision:
    """按条目当前值追加一条修订。"""
    revision = Revision(
        item_id=item.id,
        version=next_revision_version(db, item.id),
        title=item.title,
        content=item.content,
        tags=list(item.tags or []),
        changed_fields=sorted(changed_fields),
        note=note,
        created_by=actor_id,
    )
    db.add(revision)
    db.flush()
    return revision


def create_item(db: Session, *, actor_id: UUID, space: Space, values: dict[str, Any]) -> tuple[Item, Revision]:
    """直接创建条目并生成首条修订，变更字段为全部提供的字段。"""
    fields = {field: _normalize_value(field, values.get(field)) for field in ITEM_FIELDS if field in values}
    fields.setdefault("type", ItemType.BOOKMARK)
    fields.setdefault("tags", [])
    item = Item(space_id=space.id, created_by=actor_id, **fields)
    db.add(item)
    db.flush()
    provided = [field for field in ITEM_FIELDS if values.get(field) not in (None, [], "")]
    revision = record_revision(db, item, actor_id=actor_id, changed_fields=provided)
    return item, revision


def update_item(
    db: Session,
    *,
    actor_id: UUID,
    item: Item,
    changes: dict[str, Any],
    note: str | None = None,
) -> tuple[Item, Revision | None]:
    """直接更新条目，仅在有实际变化时追加修订。"""
    delta = diff_fields(item, changes)
    if not delta:
        return item, None
    for field, value in delta.items():
        setattr(item, field, value)
    db.flush()
    revision = record_revision(db, item, actor_id=actor_id, changed_fields=list(delta), note=note)
    return item, revision


def submit_edit_request(
    db: Session,
    *,
    actor: Actor,
    space: Space,
    proposal: dict[str, Any],
    item_id: UUID | None = None,
    reason: str | None = None,
) -> EditRequest:
    """创建待审核编辑请求，不修改任何条目。"""
    extra = {
        field: str(value) if isinstance(value, UUID) else value
        for field, value in proposal.items()
        if field in ITEM_FIELDS and field not in _PROPOSAL_COLUMNS and value is not None
    }
    edit_request = EditRequest(
        item_id=item_id,
        space_id=space.id,
        title=proposal.get("title"),
        content=proposal.get("content"),
        tags=proposal.get("tags"),
        payload=extra,
        reason=reason or (DEFAULT_UPDATE_REASON if item_id else DEFAULT_CREATE_REASON),
        requested_by=actor.id,
        status=EditRequestStatus.PENDING,
    )
    db.add(edit_request)
    db.flush()
    logger.info(
        "edit request submitted id=%s space_id=%s item_id=%s requested_by=%s",
        edit_request.id,
        space.id,
        item_id,
        actor.id,
    )
    return edit_request


def _proposal_values(edit_request: EditRequest) -> dict[str, Any]:
    values: dict[str, Any] = dict(edit_request.payload or {})
    for field in _PROPOSAL_COLUMNS:
        value = getattr(edit_request, field)
        if value is not None:
            values[field] = value
    return values


def _transition(
    db: Session,
    *,
    request_id: UUID,
    target: EditRequestStatus,
    reviewer: Actor,
    note: str | None,
) -> EditRequest:
    """以状态为条件推进编辑请求，已审核的请求拒绝再次处理。"""
    result = db.execute(
        update(EditRequest)
        .where(EditRequest.id == request_id)
        .where(EditRequest.status == EditRequestStatus.PENDING)
        .values(status=target, reviewed_by=reviewer.id, reviewed_at=utc_now(), review_note=note)
        .execution_options(synchronize_session=False)
    )
    edit_request = db.execute(
        select(EditRequest).where(EditRequest.id == request_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if edit_request is None:
        raise NotFoundError("Edit request")
    if result.rowcount == 0:
        raise ValidationError(
            "Edit request has already been reviewed",
            context={"status": edit_request.status},
        )
    return edit_request


def approve_edit_request(
    db: Session,
    *,
    request_id: UUID,
    reviewer: Actor,
    note: str | None = None,
) -> tuple[EditRequest, Item, Revision | None]:
    """通过编辑请求：新建提案生成条目，更新提案修改目标条目。"""
    edit_request = _transition(
        db, request_id=request_id, target=EditRequestStatus.APPROVED, reviewer=reviewer, note=note
    )
    values = _proposal_values(edit_request)

    if edit_request.item_id is None:
        space = db.get(Space, edit_request.space_id)
        if space is None or space.deleted_at is not None:
            raise NotFoundError("Space")
        item, revision = create_item(db, actor_id=edit_request.requested_by, space=space, values=values)
        edit_request.item_id = item.id
    else:
        item = db.get(Item, edit_request.item_id)
        if item is None or item.deleted_at is not None:
            raise NotFoundError("Item")
        item, revision = update_item(
            db,
            actor_id=edit_request.requested_by,
            item=item,
            changes=values,
            note=f"Approved edit request {edit_request.id}",
        )
    db.flush()
    logger.info("edit request approved id=%s item_id=%s reviewer=%s", edit_request.id, item.id, reviewer.id)
    return edit_request, item, revision


def reject_edit_request(
    db: Session,
    *,
    request_id: UUID,
    reviewer: Actor,
    note: str | None = None,
) -> EditRequest:
    edit_request = _transition(
        db, request_id=request_id, target=EditRequestStatus.REJECTED, reviewer=reviewer, note=note
    )
    logger.info("edit request rejected id=%s reviewer=%s", edit_request.id, reviewer.id)
    return edit_request


def list_revisions(db: Session, item_id: UUID) -> list[Revision]:
    """按新到旧返回修订历史。"""
    return list(
        db.execute(
            select(Revision)
            .where(Revision.item_id == item_id)
            .order_by(Revision.version.desc())
        )
        .scalars()
        .all()
    )


def revert_item(db: Session, *, item: Item, revision_id: UUID, actor: Actor) -> tuple[Item, Revision]:
    """将条目恢复到指定修订的内容，并追加一条新修订。"""
    target = db.get(Revision, revision_id)
    if target is None or target.item_id != item.id:
        raise NotFoundError("Revision")

    delta = diff_fields(item, {field: getattr(target, field) for field in REVISION_FIELDS})
    for field, value in delta.items():
        setattr(item, field, value)
    db.flush()
    revision = record_revision(
        db,
        item,
        actor_id=actor.id,
        changed_fields=list(delta),
        note=f"Reverted to version {target.version}",
    )
    return item, revision


def list_edit_requests(
    db: Session,
    *,
    actor: Actor,
    status: EditRequestStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[EditRequest], int]:
    """管理员查看全部编辑请求，成员只看自己提交的，按提交时间倒序。"""
    stmt = select(EditRequest)
    if not actor.is_admin:
        stmt = stmt.where(EditRequest.requested_by == actor.id)
    if status is not None:
        stmt = stmt.where(EditRequest.status == status)
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = (
        db.execute(stmt.order_by(EditRequest.created_at.desc(), EditRequest.id).limit(limit).offset(offset))
        .scalars()
        .all()
    )
    return list(rows), int(total or 0)
