"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- An RSA key pair and token minting for the identity verifier
- FakePaymentGateway standing in for the hosted checkout provider
- In-memory aiosqlite engine/session fixtures with the full schema
- Model factories (make_user, make_product, make_application)
- An httpx client wired to the app with all process-wide state injected
"""

from __future__ import annotations

import os

# Environment defaults: must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("IDENTITY_PROJECT_ID", "arthi-test")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("CLIENT_URL", "https://client.example.com")

import time
from decimal import Decimal
from itertools import count
from typing import Any

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.security import IdentityVerifier
from app.core.settings import settings
from app.db.base import Base
from app.db.session import build_engine, build_sessionmaker
from app.main import app
from app.models.loan_application import LoanApplication
from app.models.loan_product import LoanProduct
from app.models.user import User
from app.schemas.enums import AccountStatus, FeeStatus, LoanApplicationStatus, UserRole
from app.services.payment_gateway import CheckoutSession, CheckoutSessionNotFound, LineItem


TEST_ISSUER = f"https://securetoken.google.com/{settings.identity_project_id}"
TEST_KID = "test-key-1"


# ---------------------------------------------------------------------------
# Identity tokens
# ---------------------------------------------------------------------------


def _generate_key_pair() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


PRIVATE_KEY, PUBLIC_KEY = _generate_key_pair()


def make_token(
    email: str | None = "borrower@example.com",
    *,
    audience: str | None = None,
    issuer: str | None = None,
    expires_in: int = 3600,
    private_key: str = PRIVATE_KEY,
    kid: str = TEST_KID,
    **extra_claims: Any,
) -> str:
    now = int(time.time())
    claims: dict[str, Any] = {
        "iss": issuer or TEST_ISSUER,
        "aud": audience or settings.identity_project_id,
        "sub": f"uid-{email}",
        "iat": now,
        "exp": now + expires_in,
    }
    if email is not None:
        claims["email"] = email
    claims.update(extra_claims)
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": kid})


def auth_headers(email: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(email)}"}


def make_verifier(**overrides: Any) -> IdentityVerifier:
    options: dict[str, Any] = dict(
        audience=settings.identity_project_id,
        issuer=TEST_ISSUER,
        static_public_key=PUBLIC_KEY,
    )
    options.update(overrides)
    return IdentityVerifier(**options)


# ---------------------------------------------------------------------------
# Payment gateway
# ---------------------------------------------------------------------------


class FakePaymentGateway:
    """In-memory checkout provider; sessions start open and are completed by the test."""

    def __init__(self) -> None:
        self.sessions: dict[str, CheckoutSession] = {}
        self.created: list[dict[str, Any]] = []
        self.retrieve_calls = 0
        self.create_error: Exception | None = None
        self.retrieve_error: Exception | None = None
        self._ids = count(1)

    async def create_session(
        self,
        *,
        line_items: list[LineItem],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
    ) -> CheckoutSession:
        if self.create_error is not None:
            raise self.create_error
        session_id = f"cs_test_{next(self._ids)}"
        self.created.append(
            dict(
                line_items=line_items,
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=customer_email,
            )
        )
        session = CheckoutSession(
            session_id=session_id,
            url=f"https://checkout.example.com/pay/{session_id}",
            status="open",
            metadata=dict(metadata),
            customer_email=customer_email,
            amount_total=sum(item.unit_amount * item.quantity for item in line_items),
            currency=line_items[0].currency if line_items else None,
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        self.retrieve_calls += 1
        if self.retrieve_error is not None:
            raise self.retrieve_error
        try:
            return self.sessions[session_id]
        except KeyError as exc:
            raise CheckoutSessionNotFound(session_id) from exc

    def add_session(self, session: CheckoutSession) -> CheckoutSession:
        self.sessions[session.session_id] = session
        return session

    def complete(
        self,
        *,
        application_id: Any,
        payment_intent_id: str = "pi_test_1",
        session_id: str | None = None,
        amount_total: int | None = 1000,
        customer_email: str | None = "borrower@example.com",
    ) -> CheckoutSession:
        """Register a session that the payer has completed."""
        return self.add_session(
            CheckoutSession(
                session_id=session_id or f"cs_done_{payment_intent_id}",
                url=None,
                status="complete",
                metadata={"applicationID": str(application_id)},
                customer_email=customer_email,
                amount_total=amount_total,
                currency="usd",
                payment_intent_id=payment_intent_id,
            )
        )


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    eng = build_engine("sqlite+aiosqlite://")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


async def make_user(
    db,
    *,
    email: str = "borrower@example.com",
    role: UserRole = UserRole.BORROWER,
    account_status: AccountStatus = AccountStatus.APPROVED,
    **overrides: Any,
) -> User:
    defaults: dict[str, Any] = dict(
        email=email,
        display_name=email.split("@")[0].title(),
        role=role.value,
        account_status=account_status.value,
    )
    defaults.update(overrides)
    user = User(**defaults)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_product(db, **overrides: Any) -> LoanProduct:
    defaults: dict[str, Any] = dict(
        title="Small Business Starter",
        description="Working capital for new shops",
        category="business",
        interest_rate=Decimal("7.5"),
        max_loan_limit=Decimal("5000"),
        required_documents=["nid", "trade_license"],
        emi_plans=[6, 12],
        show_on_home=True,
        created_by="manager@example.com",
    )
    defaults.update(overrides)
    product = LoanProduct(**defaults)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


async def make_application(
    db,
    product: LoanProduct | None = None,
    *,
    request_by: str = "borrower@example.com",
    **overrides: Any,
) -> LoanApplication:
    if product is None:
        product = await make_product(db)
    defaults: dict[str, Any] = dict(
        loan_id=product.id,
        title=product.title,
        interest_rate=product.interest_rate,
        category=product.category,
        first_name="Rina",
        last_name="Akter",
        address="12 Lake Road",
        contact_no="+8801700000000",
        nid_no="1990123456789",
        income_source="Tailoring",
        monthly_income=Decimal("800"),
        loan_amount=Decimal("1500"),
        loan_reason="Second sewing machine",
        request_by=request_by,
        status=LoanApplicationStatus.PENDING.value,
        fee_status=FeeStatus.UNPAID.value,
    )
    defaults.update(overrides)
    application = LoanApplication(**defaults)
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Give each test a fresh in-memory limiter."""
    original = app.state.limiter
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        storage_uri="memory://",
    )
    yield
    app.state.limiter = original


@pytest_asyncio.fixture
async def client(engine, session_factory, gateway):
    """Drive the app in-process with the state the lifespan would normally build."""
    app.state.engine = engine
    app.state.sessionmaker = session_factory
    app.state.identity_verifier = make_verifier()
    app.state.payment_gateway = gateway
    app.state.redis = None
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    for name in ("engine", "sessionmaker", "identity_verifier", "payment_gateway", "redis"):
        if hasattr(app.state, name):
            delattr(app.state, name)
    app.dependency_overrides.clear()
