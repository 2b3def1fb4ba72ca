from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class FeePaymentRequest(BaseModel):
    # Clients may still send ``applicant.email``; the verified caller identity is used instead.
    model_config = ConfigDict(extra="ignore")

    application_id: UUID = Field(
        validation_alias=AliasChoices("application_id", "applicationID", "applicationId")
    )


class FeePaymentSession(BaseModel):
    url: str
    session_id: str


class PaymentConfirmRequest(BaseModel):
    session_id: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("session_id", "sessionId"),
    )


class PaymentConfirmResult(BaseModel):
    success: bool = True
    transaction_id: str
    order_id: UUID
    message: str
    already_processed: bool = False


class PaymentRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    transaction_id: str
    session_id: str
    payer_email: str | None = None
    amount: Decimal
    currency: str
    payment_date: datetime
    status: str
