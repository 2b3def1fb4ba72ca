from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.enums import AccountStatus, UserRole


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    display_name: str | None = None
    avatar_url: str | None = None
    role: UserRole
    account_status: AccountStatus
    suspend_reason: str | None = None
    created_at: datetime | None = None
    last_seen_at: datetime | None = None


class UserRegisterRequest(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=1024)
    # Admins are never self-registered.
    role: Literal["borrower", "manager"] = "borrower"


class UserProfileUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=1024)


class UserRoleUpdate(BaseModel):
    email: EmailStr
    role: UserRole


class UserSuspendRequest(BaseModel):
    suspend_reason: str = Field(min_length=1, max_length=1000)
