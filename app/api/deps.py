from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_caller
from app.core.errors import Unauthenticated
from app.core.security import IdentityVerificationError, IdentityVerifier, VerifiedIdentity
from app.db.session import get_db
from app.schemas.enums import UserRole
from app.services import authz
from app.services.authz import AuthContext
from app.services.payment_gateway import PaymentGateway

bearer_scheme = HTTPBearer(auto_error=False)

__all__ = [
    "AuthContext",
    "get_db_session",
    "get_identity_verifier",
    "get_payment_gateway",
    "get_verified_identity",
    "require_authenticated_user",
    "require_roles",
]


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def get_identity_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


async def get_verified_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> VerifiedIdentity:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Unauthorized access: bearer token required")
    try:
        identity = await verifier.verify(credentials.credentials)
    except IdentityVerificationError as exc:
        raise Unauthenticated(f"Unauthorized access: {exc}") from exc
    set_caller(identity.email)
    return identity


async def require_authenticated_user(
    identity: VerifiedIdentity = Depends(get_verified_identity),
) -> AuthContext:
    """Authenticated caller, no role lookup."""
    return AuthContext(email=identity.email)


def require_roles(*roles: UserRole):
    allowed = frozenset(roles)

    async def dependency(
        identity: VerifiedIdentity = Depends(get_verified_identity),
        db: AsyncSession = Depends(get_db_session),
    ) -> AuthContext:
        return await authz.resolve_role(db, identity.email, allowed)

    return dependency


require_borrower = require_roles(UserRole.BORROWER)
require_staff = require_roles(UserRole.MANAGER, UserRole.ADMIN)
require_admin = require_roles(UserRole.ADMIN)
require_registered_user = require_roles(UserRole.BORROWER, UserRole.MANAGER, UserRole.ADMIN)
