"""账号注册、邀请码与用户管理服务。"""

from datetime import timedelta
import logging
import secrets
import string
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from vault_api.core.errors import AuthorizationError, NotFoundError, ValidationError
from vault_api.models.base import as_utc, utc_now
from vault_api.models.enums import SpaceType, UserRole, UserStatus
from vault_api.models.space import Space
from vault_api.models.user import InviteCode, User, UserCredential
from vault_api.services.identity import normalize_email
from vault_api.services.local_auth import hash_password

logger = logging.getLogger("vault_api.accounts")

_INVITE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 8


def _create_user(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    role: str,
    status: str,
    password_iterations: int,
) -> User:
    normalized = normalize_email(email)
    if db.execute(select(User.id).where(User.email == normalized)).first() is not None:
        raise ValidationError("An account with this email already exists")

    now = utc_now()
    user = User(email=normalized, display_name=display_name.strip(), role=role, status=status)
    db.add(user)
    db.flush()
    db.add(
        UserCredential(
            user_id=user.id,
            password_hash=hash_password(password, iterations=password_iterations),
            status="active",
            password_updated_at=now,
        )
    )
    db.add(
        Space(
            name=f"{user.display_name}'s Vault",
            description="Personal space",
            type=SpaceType.PERSONAL,
            owner_id=user.id,
            is_public=False,
            created_by=user.id,
        )
    )
    return user


def sign_up(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    password_iterations: int,
) -> User:
    """注册账号：首个用户直接成为已审核管理员，其余用户等待审核。"""
    is_first_user = (db.execute(select(func.count()).select_from(User)).scalar_one() or 0) == 0
    user = _create_user(
        db,
        email=email,
        password=password,
        display_name=display_name,
        role=UserRole.ADMIN if is_first_user else UserRole.MEMBER,
        status=UserStatus.APPROVED if is_first_user else UserStatus.PENDING,
        password_iterations=password_iterations,
    )
    if is_first_user:
        user.approved_at = utc_now()
    return user


def redeem_invite(db: Session, *, code: str, user_id: UUID) -> InviteCode:
    """原子地占用一次邀请码，过期或次数用尽时拒绝。"""
    invite = db.execute(select(InviteCode).where(InviteCode.code == code)).scalar_one_or_none()
    if invite is None:
        raise ValidationError("Invalid invite code")

    now = utc_now()
    if as_utc(invite.expires_at) <= now:
        raise ValidationError("Invite code has expired")

    result = db.execute(
        update(InviteCode)
        .where(InviteCode.id == invite.id)
        .where(InviteCode.current_uses < InviteCode.max_uses)
        .values(current_uses=InviteCode.current_uses + 1, used_by=user_id, used_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ValidationError("Invite code has reached maximum uses")
    db.refresh(invite)
    return invite


def sign_up_with_invite(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    invite_code: str,
    password_iterations: int,
) -> tuple[User, InviteCode]:
    """使用邀请码注册，邀请码视为管理员预先审核，账号直接生效。"""
    user = _create_user(
        db,
        email=email,
        password=password,
        display_name=display_name,
        role=UserRole.MEMBER,
        status=UserStatus.APPROVED,
        password_iterations=password_iterations,
    )
    invite = redeem_invite(db, code=invite_code, user_id=user.id)
    user.invite_code = invite.code
    user.invited_by = invite.created_by
    user.approved_by = invite.created_by
    user.approved_at = utc_now()
    return user, invite


def _random_invite_code() -> str:
    return "".join(secrets.choice(_INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def generate_invite(db: Session, *, created_by: UUID, max_uses: int, expires_in_days: int) -> InviteCode:
    code = _random_invite_code()
    while db.execute(select(InviteCode.id).where(InviteCode.code == code)).first() is not None:
        code = _random_invite_code()
    invite = InviteCode(
        code=code,
        created_by=created_by,
        max_uses=max_uses,
        current_uses=0,
        expires_at=utc_now() + timedelta(days=expires_in_days),
    )
    db.add(invite)
    db.flush()
    return invite


def approve_users(db: Session, *, user_ids: list[UUID], reviewer_id: UUID) -> list[User]:
    """批量审核通过，已通过的用户跳过，返回本次实际变更的用户。"""
    users = (
        db.execute(
            select(User).where(User.id.in_(user_ids)).where(User.status != UserStatus.APPROVED)
        )
        .scalars()
        .all()
    )
    now = utc_now()
    for user in users:
        user.status = UserStatus.APPROVED
        user.approved_by = reviewer_id
        user.approved_at = now
    db.flush()
    logger.info("users approved count=%s reviewer=%s", len(users), reviewer_id)
    return list(users)


def _load_user(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


def approve_user(db: Session, *, user_id: UUID, reviewer_id: UUID) -> User:
    user = _load_user(db, user_id)
    if user.status == UserStatus.APPROVED:
        raise ValidationError("User is already approved")
    approve_users(db, user_ids=[user_id], reviewer_id=reviewer_id)
    return user


def suspend_user(db: Session, *, user_id: UUID, actor_id: UUID) -> User:
    if user_id == actor_id:
        raise ValidationError("You cannot suspend your own account")
    user = _load_user(db, user_id)
    user.status = UserStatus.SUSPENDED
    db.flush()
    logger.info("user suspended user_id=%s actor=%s", user_id, actor_id)
    return user


def change_role(db: Session, *, user_id: UUID, role: UserRole, actor_id: UUID) -> User:
    """变更用户角色，管理员不能降级自己。"""
    if user_id == actor_id and role != UserRole.ADMIN:
        raise AuthorizationError("You cannot remove your own admin role")
    user = _load_user(db, user_id)
    user.role = role
    db.flush()
    logger.info("user role changed user_id=%s role=%s actor=%s", user_id, role, actor_id)
    return user


def list_users(
    db: Session,
    *,
    status: UserStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[User], int]:
    stmt = select(User)
    if status is not None:
        stmt = stmt.where(User.status == status)
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = db.execute(stmt.order_by(User.created_at.desc(), User.id).limit(limit).offset(offset)).scalars().all()
    return list(rows), int(total or 0)


def list_invites(db: Session, *, created_by: UUID | None = None) -> list[InviteCode]:
    stmt = select(InviteCode)
    if created_by is not None:
        stmt = stmt.where(InviteCode.created_by == created_by)
    return list(db.execute(stmt.order_by(InviteCode.created_at.desc(), InviteCode.id)).scalars().all())
