"""Fee payment reconciliation.

A checkout session completed at the gateway is turned into exactly one ledger
row and one ``fee_status`` flip on the application it was created for.
Confirmation may arrive any number of times (page reloads, retries, two
tabs); the gateway's payment intent id is the ledger's natural key, and the
``UNIQUE(transaction_id)`` constraint makes concurrent duplicates converge on
the first committed row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    Forbidden,
    GatewayUnavailable,
    InvalidTransition,
    NotFound,
    PaymentIncomplete,
    ReconciliationFailure,
)
from app.core.settings import settings
from app.models.loan_application import LoanApplication
from app.models.payment_record import PaymentRecord
from app.schemas.enums import FeeStatus, PaymentRecordStatus
from app.schemas.payments import FeePaymentSession, PaymentConfirmResult
from app.services import loan_applications
from app.services.audit import record_audit_log
from app.services.authz import AuthContext
from app.services.payment_gateway import (
    CheckoutSession,
    CheckoutSessionNotFound,
    LineItem,
    PaymentGateway,
    PaymentGatewayError,
)

logger = logging.getLogger(__name__)

APPLICATION_METADATA_KEY = "applicationID"
TWOPLACES = Decimal("0.01")


def minor_to_major(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / Decimal(100)).quantize(TWOPLACES)


def _client_url(path: str) -> str:
    return f"{settings.client_url.rstrip('/')}/{path.lstrip('/')}"


async def initiate_fee_payment(
    db: AsyncSession,
    gateway: PaymentGateway,
    application_id: UUID,
    caller: AuthContext,
) -> FeePaymentSession:
    application = await loan_applications.get_application_or_404(db, application_id)
    if not caller.owns(application.request_by):
        raise Forbidden("Only the applicant can pay this application's fee")
    if application.fee_status == FeeStatus.PAID.value:
        raise InvalidTransition(
            "Application fee has already been paid",
            details={"fee_status": application.fee_status},
        )

    try:
        session = await gateway.create_session(
            line_items=[
                LineItem(
                    name=f"{application.title} fee",
                    unit_amount=settings.application_fee_cents,
                    currency=settings.application_fee_currency,
                )
            ],
            metadata={APPLICATION_METADATA_KEY: str(application.id)},
            success_url=_client_url(settings.payment_success_path),
            cancel_url=_client_url(settings.payment_cancel_path),
            customer_email=caller.email,
        )
    except PaymentGatewayError as exc:
        raise GatewayUnavailable(details={"application_id": str(application.id)}) from exc
    if not session.url:
        raise GatewayUnavailable(
            "Payment gateway returned no checkout URL",
            details={"application_id": str(application.id)},
        )
    logger.info("Checkout session %s opened for application %s", session.session_id, application.id)
    return FeePaymentSession(url=session.url, session_id=session.session_id)


async def find_payment_by_transaction(db: AsyncSession, transaction_id: str) -> PaymentRecord | None:
    stmt = select(PaymentRecord).where(PaymentRecord.transaction_id == transaction_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def _result(record: PaymentRecord, *, already_processed: bool) -> PaymentConfirmResult:
    return PaymentConfirmResult(
        success=True,
        transaction_id=record.transaction_id,
        order_id=record.id,
        message="Payment already processed" if already_processed else "Payment processed successfully",
        already_processed=already_processed,
    )


async def _load_completed_session(gateway: PaymentGateway, session_id: str) -> CheckoutSession:
    try:
        session = await gateway.retrieve_session(session_id)
    except CheckoutSessionNotFound as exc:
        raise NotFound("Checkout session not found", details={"session_id": session_id}) from exc
    except PaymentGatewayError as exc:
        logger.warning("Gateway unavailable while confirming session %s: %s", session_id, exc)
        raise ReconciliationFailure(
            "Payment gateway is unavailable, please retry",
            details={"session_id": session_id},
        ) from exc
    if not session.is_complete:
        raise PaymentIncomplete(
            details={"session_id": session_id, "session_status": session.status},
        )
    if not session.payment_intent_id:
        raise PaymentIncomplete(
            "Checkout session has no completed payment",
            details={"session_id": session_id, "session_status": session.status},
        )
    return session


def _application_id_from(session: CheckoutSession) -> UUID:
    raw = session.metadata.get(APPLICATION_METADATA_KEY)
    try:
        return UUID(str(raw))
    except (TypeError, ValueError) as exc:
        raise NotFound(
            "Application ID not found in checkout session metadata",
            details={"session_id": session.session_id},
        ) from exc


async def confirm_fee_payment(
    db: AsyncSession,
    gateway: PaymentGateway,
    session_id: str,
    *,
    actor_email: str | None = None,
) -> PaymentConfirmResult:
    session = await _load_completed_session(gateway, session_id)
    application_id = _application_id_from(session)
    application = await loan_applications.get_application_or_404(db, application_id)
    transaction_id = session.payment_intent_id

    existing = await find_payment_by_transaction(db, transaction_id)
    if existing is not None:
        return _result(existing, already_processed=True)

    now = datetime.now(timezone.utc)
    amount_minor = session.amount_total
    if amount_minor is None:
        amount_minor = settings.application_fee_cents
    record = PaymentRecord(
        application_id=application.id,
        transaction_id=transaction_id,
        session_id=session.session_id,
        payer_email=session.customer_email or application.request_by,
        amount=minor_to_major(amount_minor),
        currency=(session.currency or settings.application_fee_currency).lower(),
        payment_date=now,
        status=PaymentRecordStatus.COMPLETED.value,
    )
    context = {
        "session_id": session.session_id,
        "application_id": str(application.id),
        "transaction_id": transaction_id,
    }

    try:
        db.add(record)
        await db.flush()
        stmt = (
            update(LoanApplication)
            .where(
                LoanApplication.id == application.id,
                LoanApplication.fee_status == FeeStatus.UNPAID.value,
            )
            .values(
                fee_status=FeeStatus.PAID.value,
                payment_date=now,
                transaction_id=transaction_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 1:
            record_audit_log(
                db,
                actor_email=actor_email,
                action="loan_application.fee_paid",
                resource_type="loan_application",
                resource_id=str(application.id),
                old_value={"fee_status": FeeStatus.UNPAID.value},
                new_value={
                    "fee_status": FeeStatus.PAID.value,
                    "transaction_id": transaction_id,
                    "amount": record.amount,
                },
            )
        else:
            # A different completed session already settled this fee; the
            # money was still received so the ledger keeps the row.
            stored = (
                await db.execute(
                    select(LoanApplication.fee_status, LoanApplication.transaction_id).where(
                        LoanApplication.id == application.id
                    )
                )
            ).one()
            logger.warning(
                "Application %s fee already settled by %s; recorded extra payment %s",
                application.id,
                stored.transaction_id,
                transaction_id,
                extra={"context": context},
            )
            record_audit_log(
                db,
                actor_email=actor_email,
                action="loan_application.extra_fee_payment",
                resource_type="loan_application",
                resource_id=str(application.id),
                old_value={"fee_status": stored.fee_status, "transaction_id": stored.transaction_id},
                new_value={"transaction_id": transaction_id, "amount": record.amount},
            )
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        existing = await find_payment_by_transaction(db, transaction_id)
        if existing is not None:
            logger.info("Duplicate confirmation converged on %s", transaction_id, extra={"context": context})
            return _result(existing, already_processed=True)
        logger.exception("Ledger write rejected", extra={"context": context})
        raise ReconciliationFailure(details=context) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Ledger write failed", extra={"context": context})
        raise ReconciliationFailure(details=context) from exc

    logger.info(
        "Recorded fee payment %s for application %s", transaction_id, application.id,
        extra={"context": context},
    )
    return _result(record, already_processed=False)


async def get_payment_info(
    db: AsyncSession, application_id: UUID, caller: AuthContext
) -> PaymentRecord | None:
    application = await loan_applications.get_visible_application(db, application_id, caller)
    stmt = (
        select(PaymentRecord)
        .where(PaymentRecord.application_id == application.id)
        .order_by(PaymentRecord.payment_date.asc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalars().first()
