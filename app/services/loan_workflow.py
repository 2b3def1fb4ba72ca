from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, InvalidTransition
from app.models.loan_application import LoanApplication
from app.schemas.enums import STAFF_ROLES, LoanApplicationStatus, UserRole
from app.services import loan_applications
from app.services.audit import record_audit_log
from app.services.authz import AuthContext

logger = logging.getLogger(__name__)

OWNER = "owner"


@dataclass(frozen=True)
class StatusEdge:
    source: LoanApplicationStatus
    target: LoanApplicationStatus
    # Either a set of roles or OWNER (the submitting borrower)
    actors: frozenset[UserRole] | str


TRANSITIONS: dict[LoanApplicationStatus, StatusEdge] = {
    LoanApplicationStatus.APPROVED: StatusEdge(
        LoanApplicationStatus.PENDING, LoanApplicationStatus.APPROVED, STAFF_ROLES
    ),
    LoanApplicationStatus.REJECTED: StatusEdge(
        LoanApplicationStatus.PENDING, LoanApplicationStatus.REJECTED, STAFF_ROLES
    ),
    LoanApplicationStatus.CANCELED: StatusEdge(
        LoanApplicationStatus.PENDING, LoanApplicationStatus.CANCELED, OWNER
    ),
}


def edge_for(target: LoanApplicationStatus | str) -> StatusEdge:
    try:
        target_status = LoanApplicationStatus(target)
    except ValueError as exc:
        raise InvalidTransition(
            f"Unknown application status: {target}",
            details={"target_status": str(target)},
        ) from exc
    edge = TRANSITIONS.get(target_status)
    if edge is None:
        raise InvalidTransition(
            f"Applications cannot be moved to {target_status.value}",
            details={"target_status": target_status.value},
        )
    return edge


def ensure_actor(edge: StatusEdge, application: LoanApplication, caller: AuthContext) -> None:
    if edge.actors == OWNER:
        if caller.role == UserRole.BORROWER and caller.owns(application.request_by):
            return
        raise Forbidden(
            "Only the submitting borrower can cancel an application",
            details={"allowed_roles": [UserRole.BORROWER.value], "actual_role": _role_value(caller)},
        )
    if caller.role not in edge.actors:
        raise Forbidden(
            f"Only staff can move applications to {edge.target.value}",
            details={
                "allowed_roles": sorted(role.value for role in edge.actors),
                "actual_role": _role_value(caller),
            },
        )


def _role_value(caller: AuthContext) -> str | None:
    return caller.role.value if caller.role else None


def ensure_source(edge: StatusEdge, current_status: str) -> None:
    if current_status != edge.source.value:
        raise InvalidTransition(
            f"Cannot move application from {current_status} to {edge.target.value}",
            details={"current_status": current_status, "target_status": edge.target.value},
        )


async def transition_application(
    db: AsyncSession,
    application_id: UUID,
    target_status: LoanApplicationStatus | str,
    caller: AuthContext,
) -> LoanApplication:
    """Move an application along one edge of the status table.

    The write is a compare-and-set on the current status so two concurrent
    reviewers cannot both succeed. Callers commit the session.
    """
    application = await loan_applications.get_application_or_404(db, application_id)
    edge = edge_for(target_status)
    ensure_actor(edge, application, caller)
    ensure_source(edge, application.status)

    stmt = (
        update(LoanApplication)
        .where(
            LoanApplication.id == application.id,
            LoanApplication.status == edge.source.value,
        )
        .values(status=edge.target.value)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        await db.refresh(application)
        logger.info(
            "Lost status race for application %s (now %s)", application.id, application.status
        )
        raise InvalidTransition(
            f"Cannot move application from {application.status} to {edge.target.value}",
            details={"current_status": application.status, "target_status": edge.target.value},
        )

    record_audit_log(
        db,
        actor_email=caller.email,
        action="loan_application.status_changed",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value={"status": edge.source.value},
        new_value={"status": edge.target.value},
    )
    await db.flush()
    await db.refresh(application)
    return application
