from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden
from app.models.user import User
from app.schemas.enums import STAFF_ROLES, AccountStatus, UserRole


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Verified caller identity, plus the stored role when one was resolved."""

    email: str
    role: UserRole | None = None
    user_id: UUID | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def owns(self, request_by: str | None) -> bool:
        return bool(request_by) and request_by.lower() == self.email.lower()


def _role_values(roles: Iterable[UserRole]) -> list[str]:
    return sorted(role.value for role in roles)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == email.lower())
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def resolve_role(
    db: AsyncSession,
    email: str,
    allowed_roles: Iterable[UserRole],
) -> AuthContext:
    allowed = frozenset(allowed_roles)
    user = await get_user_by_email(db, email)
    if user is None:
        raise Forbidden(
            "Forbidden: no account is registered for this identity",
            details={"allowed_roles": _role_values(allowed), "actual_role": None},
        )
    try:
        role = UserRole(user.role)
    except ValueError:
        role = None
    if role not in allowed:
        raise Forbidden(
            "Forbidden: role not permitted for this operation",
            details={
                "allowed_roles": _role_values(allowed),
                "actual_role": role.value if role else user.role,
            },
        )
    if user.account_status != AccountStatus.APPROVED.value:
        raise Forbidden(
            "Forbidden: account is not active",
            details={
                "allowed_roles": _role_values(allowed),
                "actual_role": role.value,
                "account_status": user.account_status,
            },
        )
    return AuthContext(email=user.email, role=role, user_id=user.id)
