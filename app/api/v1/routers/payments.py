from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import limiter
from app.db.session import get_db
from app.schemas.payments import (
    FeePaymentRequest,
    FeePaymentSession,
    PaymentConfirmRequest,
    PaymentConfirmResult,
    PaymentRecordOut,
)
from app.services import payments
from app.services.payment_gateway import PaymentGateway

router = APIRouter(tags=["payments"])

CHECKOUT_RATE_LIMIT = "20/minute"


@router.post(
    "/application-fee",
    response_model=FeePaymentSession,
    summary="Open a hosted checkout session for an application fee",
)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def start_application_fee_payment(
    request: Request,
    payload: FeePaymentRequest,
    borrower: deps.AuthContext = Depends(deps.require_borrower),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(deps.get_payment_gateway),
) -> FeePaymentSession:
    return await payments.initiate_fee_payment(db, gateway, payload.application_id, borrower)


@router.post(
    "/payment-success",
    response_model=PaymentConfirmResult,
    summary="Confirm a completed checkout session",
)
async def confirm_application_fee_payment(
    payload: PaymentConfirmRequest,
    borrower: deps.AuthContext = Depends(deps.require_borrower),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(deps.get_payment_gateway),
) -> PaymentConfirmResult:
    # Commits inside the reconciler; safe to call repeatedly for one session.
    return await payments.confirm_fee_payment(
        db, gateway, payload.session_id, actor_email=borrower.email
    )


@router.get(
    "/payment-info/{application_id}",
    response_model=PaymentRecordOut | None,
    summary="Ledger entry for an application fee",
)
async def get_payment_info(
    application_id: UUID,
    caller: deps.AuthContext = Depends(deps.require_registered_user),
    db: AsyncSession = Depends(get_db),
) -> PaymentRecordOut | None:
    record = await payments.get_payment_info(db, application_id, caller)
    if record is None:
        return None
    return PaymentRecordOut.model_validate(record)
