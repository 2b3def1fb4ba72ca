from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, InvalidTransition, NotFound
from app.models.user import User
from app.schemas.enums import AccountStatus, UserRole
from app.schemas.users import UserProfileUpdate, UserRegisterRequest
from app.services.audit import record_audit_log
from app.services.authz import AuthContext, get_user_by_email

logger = logging.getLogger(__name__)

# target account status -> statuses it may be reached from
ACCOUNT_STATUS_TRANSITIONS: dict[AccountStatus, frozenset[AccountStatus]] = {
    AccountStatus.APPROVED: frozenset({AccountStatus.PENDING, AccountStatus.SUSPENDED}),
    AccountStatus.SUSPENDED: frozenset({AccountStatus.PENDING, AccountStatus.APPROVED}),
}


def initial_account_status(role: UserRole) -> AccountStatus:
    if role == UserRole.BORROWER:
        return AccountStatus.APPROVED
    return AccountStatus.PENDING


async def get_user_or_404(db: AsyncSession, email: str) -> User:
    user = await get_user_by_email(db, email)
    if user is None:
        raise NotFound("User not found", details={"email": email})
    return user


async def get_user_by_id_or_404(db: AsyncSession, user_id: UUID) -> User:
    stmt = select(User).where(User.id == user_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found", details={"user_id": str(user_id)})
    return user


async def register_or_touch(
    db: AsyncSession,
    email: str,
    payload: UserRegisterRequest,
) -> tuple[User, bool]:
    """Create the account on first login; later logins only refresh ``last_seen_at``."""
    now = datetime.now(timezone.utc)
    existing = await get_user_by_email(db, email)
    if existing is not None:
        existing.last_seen_at = now
        db.add(existing)
        await db.flush()
        await db.refresh(existing)
        return existing, False

    role = UserRole(payload.role)
    user = User(
        email=email.lower(),
        display_name=payload.display_name,
        avatar_url=payload.avatar_url,
        role=role.value,
        account_status=initial_account_status(role).value,
        last_seen_at=now,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent first login for the same identity
        await db.rollback()
        existing = await get_user_by_email(db, email)
        if existing is not None:
            return existing, False
        raise
    record_audit_log(
        db,
        actor_email=user.email,
        action="user.registered",
        resource_type="user",
        resource_id=str(user.id),
        new_value={"role": user.role, "account_status": user.account_status},
    )
    await db.flush()
    await db.refresh(user)
    logger.info("Registered %s as %s (%s)", user.email, user.role, user.account_status)
    return user, True


async def update_profile(db: AsyncSession, caller: AuthContext, payload: UserProfileUpdate) -> User:
    user = await get_user_or_404(db, caller.email)
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if getattr(user, key) != value
    }
    if not changes:
        return user
    old_value = {key: getattr(user, key) for key in changes}
    for key, value in changes.items():
        setattr(user, key, value)
    db.add(user)
    record_audit_log(
        db,
        actor_email=caller.email,
        action="user.profile_updated",
        resource_type="user",
        resource_id=str(user.id),
        old_value=old_value,
        new_value=changes,
    )
    await db.flush()
    await db.refresh(user)
    return user


def _ensure_not_self(admin: AuthContext, user: User) -> None:
    if admin.owns(user.email):
        raise Forbidden("Admins cannot change their own role or account status")


async def update_role(db: AsyncSession, admin: AuthContext, email: str, role: UserRole) -> User:
    user = await get_user_or_404(db, email)
    _ensure_not_self(admin, user)
    old_role = user.role
    user.role = UserRole(role).value
    db.add(user)
    record_audit_log(
        db,
        actor_email=admin.email,
        action="user.role_changed",
        resource_type="user",
        resource_id=str(user.id),
        old_value={"role": old_role},
        new_value={"role": user.role},
    )
    await db.flush()
    await db.refresh(user)
    return user


async def set_account_status(
    db: AsyncSession,
    admin: AuthContext,
    user_id: UUID,
    target: AccountStatus,
    *,
    suspend_reason: str | None = None,
) -> User:
    user = await get_user_by_id_or_404(db, user_id)
    _ensure_not_self(admin, user)
    allowed_sources = ACCOUNT_STATUS_TRANSITIONS.get(target, frozenset())
    current = AccountStatus(user.account_status)
    if current not in allowed_sources:
        raise InvalidTransition(
            f"Cannot move account from {current.value} to {target.value}",
            details={"current_status": current.value, "target_status": target.value},
        )
    user.account_status = target.value
    user.suspend_reason = suspend_reason if target == AccountStatus.SUSPENDED else None
    db.add(user)
    record_audit_log(
        db,
        actor_email=admin.email,
        action=f"user.{target.value}",
        resource_type="user",
        resource_id=str(user.id),
        old_value={"account_status": current.value},
        new_value={"account_status": target.value, "suspend_reason": user.suspend_reason},
    )
    await db.flush()
    await db.refresh(user)
    return user


async def ensure_seed_admin(db: AsyncSession, email: str, display_name: str) -> User:
    user = await get_user_by_email(db, email)
    if user is None:
        user = User(
            email=email.lower(),
            display_name=display_name,
            role=UserRole.ADMIN.value,
            account_status=AccountStatus.APPROVED.value,
        )
        db.add(user)
        await db.flush()
        logger.info("Seeded admin account %s", user.email)
    return user
