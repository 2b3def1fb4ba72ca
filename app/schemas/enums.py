from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    BORROWER = "borrower"
    MANAGER = "manager"
    ADMIN = "admin"


STAFF_ROLES = frozenset({UserRole.MANAGER, UserRole.ADMIN})


class AccountStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class LoanApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELED = "canceled"


class FeeStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class PaymentRecordStatus(str, Enum):
    COMPLETED = "completed"


def _sql_in(enum_cls: type[Enum]) -> str:
    return ", ".join(f"'{member.value}'" for member in enum_cls)


def check_in(column: str, enum_cls: type[Enum]) -> str:
    """SQL CHECK expression restricting *column* to the members of *enum_cls*."""
    return f"{column} IN ({_sql_in(enum_cls)})"
