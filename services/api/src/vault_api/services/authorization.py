"""空间访问权限判断。

统一封装空间读写规则，避免路由层重复拼装授权条件导致规则不一致：
1. 个人空间：仅所有者可读写。
2. 公共空间：管理员可读写；公开的公共空间对所有已审核用户可读。
3. 非管理员写公共空间需走编辑请求审核。
管理员对任意空间都可直接写入。
"""

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthorizationError, NotFoundError
from vault_api.core.metrics import PerformanceMonitor
from vault_api.models.enums import SpaceType, UserRole
from vault_api.models.space import Space
from vault_api.models.user import User
from vault_api.services.cache import CacheManager
from vault_api.services.query import execute_with_cache


@dataclass(frozen=True)
class Actor:
    """已认证且已审核的调用方。"""

    # 用户 ID。
    id: UUID
    # 登录邮箱。
    email: str
    # 展示名。
    display_name: str
    # 角色（admin/member）。
    role: str
    # 审核状态。
    status: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def cache_tag(self) -> str:
        return f"user:{self.id}"

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
            status=user.status,
        )


class WriteMode(StrEnum):
    """写入方式。"""

    DIRECT = "direct"  # 直接写入并生成修订。
    MODERATED = "moderated"  # 生成编辑请求等待审核。


def load_space(db: Session, space_id: UUID) -> Space:
    """读取未删除的空间。"""
    space = db.get(Space, space_id)
    if space is None or space.deleted_at is not None:
        raise NotFoundError("Space")
    return space


def can_read_space(actor: Actor, space: Space) -> bool:
    if actor.is_admin:
        return True
    if space.type == SpaceType.PERSONAL:
        return space.owner_id == actor.id
    return bool(space.is_public)


def ensure_space_read_access(db: Session, *, actor: Actor, space_id: UUID) -> Space:
    space = load_space(db, space_id)
    if not can_read_space(actor, space):
        raise AuthorizationError("Access denied")
    return space


def resolve_write_mode(actor: Actor, space: Space) -> WriteMode:
    """判定调用方对空间的写入方式，无权写入时抛出 403。"""
    if actor.is_admin:
        return WriteMode.DIRECT
    if space.type == SpaceType.PERSONAL:
        if space.owner_id != actor.id:
            raise AuthorizationError("Access denied")
        return WriteMode.DIRECT
    if not space.is_public:
        raise AuthorizationError("Access denied")
    return WriteMode.MODERATED


def ensure_space_write_access(db: Session, *, actor: Actor, space_id: UUID) -> tuple[Space, WriteMode]:
    space = load_space(db, space_id)
    return space, resolve_write_mode(actor, space)


def accessible_spaces_condition(actor: Actor):
    """可读空间过滤条件，供列表/搜索/导出复用。"""
    not_deleted = Space.deleted_at.is_(None)
    if actor.is_admin:
        return not_deleted
    return and_(
        not_deleted,
        or_(
            and_(Space.type == SpaceType.PERSONAL, Space.owner_id == actor.id),
            and_(Space.type == SpaceType.COMMON, Space.is_public.is_(True)),
        ),
    )


def accessible_space_ids(
    db: Session,
    *,
    actor: Actor,
    cache: CacheManager,
    monitor: PerformanceMonitor,
    ttl: int = 600,
) -> list[UUID]:
    """返回调用方可读的空间 ID 列表（单独缓存，变化频率低于条目）。"""

    def _compute() -> list[str]:
        rows = db.execute(select(Space.id).where(accessible_spaces_condition(actor))).scalars().all()
        return [str(space_id) for space_id in rows]

    key = cache.generate_key("user_spaces", {"userId": str(actor.id), "role": actor.role})
    ids = execute_with_cache(cache, monitor, key, _compute, ttl=ttl, tags=[actor.cache_tag, "spaces"])
    return [UUID(value) for value in ids]
