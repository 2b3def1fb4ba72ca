"""Create users, loan products, applications, fee ledger and audit log"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=1024), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("account_status", sa.String(length=20), nullable=False),
        sa.Column("suspend_reason", sa.String(length=1000), nullable=True),
        sa.Column("last_seen_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('borrower', 'manager', 'admin')", name="ck_users_role"),
        sa.CheckConstraint(
            "account_status IN ('pending', 'approved', 'suspended')", name="ck_users_account_status"
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "loan_products",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("interest_rate", sa.Numeric(10, 4), nullable=False),
        sa.Column("max_loan_limit", sa.Numeric(18, 2), nullable=False),
        sa.Column("required_documents", sa.JSON(), nullable=False),
        sa.Column("emi_plans", sa.JSON(), nullable=False),
        sa.Column("show_on_home", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("image", sa.String(length=1024), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("interest_rate >= 0", name="ck_loan_products_rate_nonneg"),
        sa.CheckConstraint("max_loan_limit >= 0", name="ck_loan_products_limit_nonneg"),
    )
    op.create_index("ix_loan_products_category", "loan_products", ["category"])

    op.create_table(
        "loan_applications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "loan_id",
            sa.Uuid(),
            sa.ForeignKey("loan_products.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("interest_rate", sa.Numeric(10, 4), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("contact_no", sa.String(length=50), nullable=False),
        sa.Column("nid_no", sa.String(length=100), nullable=False),
        sa.Column("income_source", sa.String(length=255), nullable=True),
        sa.Column("monthly_income", sa.Numeric(18, 2), nullable=False),
        sa.Column("loan_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("loan_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("request_by", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("fee_status", sa.String(length=20), nullable=False, server_default="unpaid"),
        sa.Column("payment_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("transaction_id", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("transaction_id", name="uq_loan_applications_transaction_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'canceled')", name="ck_loan_app_status"
        ),
        sa.CheckConstraint("fee_status IN ('unpaid', 'paid')", name="ck_loan_app_fee_status"),
        sa.CheckConstraint("loan_amount > 0", name="ck_loan_app_amount_positive"),
        sa.CheckConstraint("monthly_income >= 0", name="ck_loan_app_income_nonneg"),
        sa.CheckConstraint("interest_rate >= 0", name="ck_loan_app_rate_nonneg"),
        sa.CheckConstraint(
            "(fee_status = 'paid') = (transaction_id IS NOT NULL)",
            name="ck_loan_app_paid_has_transaction",
        ),
    )
    op.create_index("ix_loan_applications_loan_id", "loan_applications", ["loan_id"])
    op.create_index("ix_loan_applications_request_by", "loan_applications", ["request_by"])
    op.create_index("ix_loan_applications_status", "loan_applications", ["status"])

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "application_id",
            sa.Uuid(),
            sa.ForeignKey("loan_applications.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("transaction_id", sa.String(length=255), nullable=False),
        sa.Column("session_id", sa.String(length=255), nullable=False),
        sa.Column("payer_email", sa.String(length=255), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("payment_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("transaction_id", name="uq_payment_records_transaction_id"),
        sa.CheckConstraint("amount >= 0", name="ck_payment_records_amount_nonneg"),
        sa.CheckConstraint("status IN ('completed')", name="ck_payment_records_status"),
    )
    op.create_index("ix_payment_records_application_id", "payment_records", ["application_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_email", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=255), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_actor_email", "audit_logs", ["actor_email"])
    op.create_index("ix_audit_logs_resource_id", "audit_logs", ["resource_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_resource_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_email", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_payment_records_application_id", table_name="payment_records")
    op.drop_table("payment_records")
    op.drop_index("ix_loan_applications_status", table_name="loan_applications")
    op.drop_index("ix_loan_applications_request_by", table_name="loan_applications")
    op.drop_index("ix_loan_applications_loan_id", table_name="loan_applications")
    op.drop_table("loan_applications")
    op.drop_index("ix_loan_products_category", table_name="loan_products")
    op.drop_table("loan_products")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
