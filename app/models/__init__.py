from app.models.audit_log import AuditLog
from app.models.loan_application import LoanApplication
from app.models.loan_product import LoanProduct
from app.models.payment_record import PaymentRecord
from app.models.user import User

__all__ = [
    "AuditLog",
    "LoanApplication",
    "LoanProduct",
    "PaymentRecord",
    "User",
]
