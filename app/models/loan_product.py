import uuid

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Numeric, String, Text, Uuid, func

from app.db.base import Base


class LoanProduct(Base):
    __tablename__ = "loan_products"
    __table_args__ = (
        CheckConstraint("interest_rate >= 0", name="ck_loan_products_rate_nonneg"),
        CheckConstraint("max_loan_limit >= 0", name="ck_loan_products_limit_nonneg"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, index=True)
    interest_rate = Column(Numeric(10, 4), nullable=False, default=0)
    max_loan_limit = Column(Numeric(18, 2), nullable=False, default=0)
    required_documents = Column(JSON, nullable=False, default=list)
    emi_plans = Column(JSON, nullable=False, default=list)
    show_on_home = Column(Boolean, nullable=False, default=False)
    image = Column(String(1024), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
