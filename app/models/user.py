import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, String, Uuid, func

from app.db.base import Base
from app.schemas.enums import AccountStatus, UserRole, check_in


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(check_in("role", UserRole), name="ck_users_role"),
        CheckConstraint(check_in("account_status", AccountStatus), name="ck_users_account_status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.BORROWER.value)
    account_status = Column(String(20), nullable=False, default=AccountStatus.APPROVED.value)
    suspend_reason = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
