import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)

from app.db.base import Base
from app.schemas.enums import FeeStatus, LoanApplicationStatus, check_in


class LoanApplication(Base):
    __tablename__ = "loan_applications"
    __table_args__ = (
        CheckConstraint(check_in("status", LoanApplicationStatus), name="ck_loan_app_status"),
        CheckConstraint(check_in("fee_status", FeeStatus), name="ck_loan_app_fee_status"),
        CheckConstraint("loan_amount > 0", name="ck_loan_app_amount_positive"),
        CheckConstraint("monthly_income >= 0", name="ck_loan_app_income_nonneg"),
        CheckConstraint("interest_rate >= 0", name="ck_loan_app_rate_nonneg"),
        CheckConstraint(
            "(fee_status = 'paid') = (transaction_id IS NOT NULL)",
            name="ck_loan_app_paid_has_transaction",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("loan_products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Product snapshot taken at submission time
    title = Column(String(255), nullable=False)
    interest_rate = Column(Numeric(10, 4), nullable=False)
    category = Column(String(100), nullable=True)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    address = Column(String(500), nullable=True)
    contact_no = Column(String(50), nullable=False)
    nid_no = Column(String(100), nullable=False)
    income_source = Column(String(255), nullable=True)
    monthly_income = Column(Numeric(18, 2), nullable=False, default=0)
    loan_amount = Column(Numeric(18, 2), nullable=False)
    loan_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    request_by = Column(String(255), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=LoanApplicationStatus.PENDING.value, index=True)
    fee_status = Column(String(20), nullable=False, default=FeeStatus.UNPAID.value)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    transaction_id = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
