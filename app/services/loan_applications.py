from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, NotFound, ValidationFailed
from app.models.loan_application import LoanApplication
from app.schemas.enums import FeeStatus, LoanApplicationStatus
from app.schemas.loan import LoanApplicationCreate
from app.services import loan_products
from app.services.audit import model_snapshot, record_audit_log
from app.services.authz import AuthContext

_AUDITED_FIELDS = ("loan_id", "title", "loan_amount", "status", "fee_status", "request_by")


async def get_application(db: AsyncSession, application_id: UUID) -> LoanApplication | None:
    stmt = select(LoanApplication).where(LoanApplication.id == application_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_application_or_404(db: AsyncSession, application_id: UUID) -> LoanApplication:
    application = await get_application(db, application_id)
    if application is None:
        raise NotFound("Loan application not found", details={"application_id": str(application_id)})
    return application


def ensure_can_view(application: LoanApplication, caller: AuthContext) -> None:
    if caller.is_staff or caller.owns(application.request_by):
        return
    raise Forbidden("You do not have access to this application")


async def get_visible_application(
    db: AsyncSession, application_id: UUID, caller: AuthContext
) -> LoanApplication:
    application = await get_application_or_404(db, application_id)
    ensure_can_view(application, caller)
    return application


async def create_application(
    db: AsyncSession,
    payload: LoanApplicationCreate,
    caller: AuthContext,
) -> LoanApplication:
    product = await loan_products.get_product_or_404(db, payload.loan_id)
    if product.max_loan_limit and payload.loan_amount > product.max_loan_limit:
        raise ValidationFailed(
            "loan_amount: exceeds the product's maximum loan limit",
            details={"max_loan_limit": str(product.max_loan_limit)},
        )
    application = LoanApplication(
        loan_id=product.id,
        title=product.title,
        interest_rate=product.interest_rate,
        category=product.category,
        first_name=payload.first_name,
        last_name=payload.last_name,
        address=payload.address,
        contact_no=payload.contact_no,
        nid_no=payload.nid_no,
        income_source=payload.income_source,
        monthly_income=payload.monthly_income,
        loan_amount=payload.loan_amount,
        loan_reason=payload.loan_reason,
        notes=payload.notes,
        request_by=caller.email,
        status=LoanApplicationStatus.PENDING.value,
        fee_status=FeeStatus.UNPAID.value,
    )
    db.add(application)
    await db.flush()
    record_audit_log(
        db,
        actor_email=caller.email,
        action="loan_application.created",
        resource_type="loan_application",
        resource_id=str(application.id),
        new_value=model_snapshot(application, include=_AUDITED_FIELDS),
    )
    await db.flush()
    return application
