from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.enums import AccountStatus
from app.schemas.users import (
    UserOut,
    UserProfileUpdate,
    UserRegisterRequest,
    UserRoleUpdate,
    UserSuspendRequest,
)
from app.services import users as users_service

router = APIRouter(tags=["users"])


@router.post("/users", response_model=UserOut, summary="Register on first login or refresh last seen")
async def register_user(
    payload: UserRegisterRequest,
    response: Response,
    caller: deps.AuthContext = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user, created = await users_service.register_or_touch(db, caller.email, payload)
    await db.commit()
    if created:
        response.status_code = status.HTTP_201_CREATED
    return UserOut.model_validate(user)


@router.get("/db-user", response_model=UserOut, summary="Current caller's account")
async def get_db_user(
    caller: deps.AuthContext = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users_service.get_user_or_404(db, caller.email)
    return UserOut.model_validate(user)


@router.patch("/users-update", response_model=UserOut, summary="Update own display name or avatar")
async def update_own_profile(
    payload: UserProfileUpdate,
    caller: deps.AuthContext = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users_service.update_profile(db, caller, payload)
    await db.commit()
    return UserOut.model_validate(user)


@router.patch("/update-role", response_model=UserOut, summary="Change a user's role")
async def update_user_role(
    payload: UserRoleUpdate,
    admin: deps.AuthContext = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users_service.update_role(db, admin, payload.email, payload.role)
    await db.commit()
    return UserOut.model_validate(user)


@router.patch("/users/suspend/{user_id}", response_model=UserOut, summary="Suspend a user account")
async def suspend_user(
    user_id: UUID,
    payload: UserSuspendRequest,
    admin: deps.AuthContext = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users_service.set_account_status(
        db, admin, user_id, AccountStatus.SUSPENDED, suspend_reason=payload.suspend_reason
    )
    await db.commit()
    return UserOut.model_validate(user)


@router.patch("/users/approve/{user_id}", response_model=UserOut, summary="Approve a user account")
async def approve_user(
    user_id: UUID,
    admin: deps.AuthContext = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users_service.set_account_status(db, admin, user_id, AccountStatus.APPROVED)
    await db.commit()
    return UserOut.model_validate(user)
