from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.loan import (
    LoanApplicationCreate,
    LoanApplicationCreated,
    LoanApplicationOut,
    LoanApplicationStatusUpdate,
)
from app.services import loan_applications, loan_workflow

router = APIRouter(tags=["loan-applications"])


@router.post(
    "/apply-loan",
    response_model=LoanApplicationCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a loan application",
)
async def apply_for_loan(
    payload: LoanApplicationCreate,
    borrower: deps.AuthContext = Depends(deps.require_borrower),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationCreated:
    application = await loan_applications.create_application(db, payload, borrower)
    await db.commit()
    return LoanApplicationCreated(inserted_id=application.id)


@router.get(
    "/application/{application_id}",
    response_model=LoanApplicationOut,
    summary="Get a loan application",
)
async def get_loan_application(
    application_id: UUID,
    caller: deps.AuthContext = Depends(deps.require_registered_user),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationOut:
    application = await loan_applications.get_visible_application(db, application_id, caller)
    return LoanApplicationOut.model_validate(application)


@router.patch(
    "/application/{application_id}",
    response_model=LoanApplicationOut,
    summary="Approve, reject or cancel a loan application",
)
async def update_loan_application_status(
    application_id: UUID,
    payload: LoanApplicationStatusUpdate,
    caller: deps.AuthContext = Depends(deps.require_registered_user),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationOut:
    application = await loan_workflow.transition_application(
        db, application_id, payload.status, caller
    )
    await db.commit()
    return LoanApplicationOut.model_validate(application)
