from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.enums import FeeStatus, LoanApplicationStatus


class LoanProductCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category: str = Field(min_length=1, max_length=100)
    interest_rate: Decimal = Field(ge=0)
    max_loan_limit: Decimal = Field(ge=0)
    required_documents: list[str] = Field(default_factory=list)
    emi_plans: list[int] = Field(default_factory=list)
    show_on_home: bool = False
    image: str | None = Field(default=None, max_length=1024)


class LoanProductUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, min_length=1, max_length=100)
    interest_rate: Decimal | None = Field(default=None, ge=0)
    max_loan_limit: Decimal | None = Field(default=None, ge=0)
    required_documents: list[str] | None = None
    emi_plans: list[int] | None = None
    show_on_home: bool | None = None
    image: str | None = Field(default=None, max_length=1024)


class LoanProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    category: str
    interest_rate: Decimal
    max_loan_limit: Decimal
    required_documents: list[str] = []
    emi_plans: list[int] = []
    show_on_home: bool
    image: str | None = None
    created_at: datetime | None = None


class LoanApplicationCreate(BaseModel):
    """Applicant-supplied fields; product snapshot and status are server-side."""

    loan_id: UUID
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    address: str | None = Field(default=None, max_length=500)
    contact_no: str = Field(min_length=1, max_length=50)
    nid_no: str = Field(min_length=1, max_length=100)
    income_source: str | None = Field(default=None, max_length=255)
    monthly_income: Decimal = Field(ge=0)
    loan_amount: Decimal = Field(gt=0)
    loan_reason: str | None = None
    notes: str | None = None


class LoanApplicationCreated(BaseModel):
    inserted_id: UUID


class LoanApplicationStatusUpdate(BaseModel):
    status: LoanApplicationStatus


class LoanApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_id: UUID | None = None
    title: str
    interest_rate: Decimal
    category: str | None = None
    first_name: str
    last_name: str
    address: str | None = None
    contact_no: str
    nid_no: str
    income_source: str | None = None
    monthly_income: Decimal
    loan_amount: Decimal
    loan_reason: str | None = None
    notes: str | None = None
    request_by: str
    status: LoanApplicationStatus
    fee_status: FeeStatus
    payment_date: datetime | None = None
    transaction_id: str | None = None
    created_at: datetime | None = None
