import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)

from app.db.base import Base
from app.schemas.enums import PaymentRecordStatus, check_in


class PaymentRecord(Base):
    """Append-only fee ledger; ``transaction_id`` is the idempotency key."""

    __tablename__ = "payment_records"
    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_payment_records_transaction_id"),
        CheckConstraint("amount >= 0", name="ck_payment_records_amount_nonneg"),
        CheckConstraint(check_in("status", PaymentRecordStatus), name="ck_payment_records_status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    transaction_id = Column(String(255), nullable=False)
    session_id = Column(String(255), nullable=False)
    payer_email = Column(String(255), nullable=True)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentRecordStatus.COMPLETED.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
