"""Hosted checkout adapter over Stripe Checkout Sessions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import stripe

logger = logging.getLogger(__name__)


class PaymentGatewayError(RuntimeError):
    """The gateway could not be reached or refused the request."""


class CheckoutSessionNotFound(PaymentGatewayError):
    pass


@dataclass(frozen=True)
class LineItem:
    name: str
    unit_amount: int
    currency: str
    quantity: int = 1


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str | None = None
    status: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    customer_email: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    payment_intent_id: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == "complete"


class PaymentGateway(Protocol):
    async def create_session(
        self,
        *,
        line_items: list[LineItem],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
    ) -> CheckoutSession: ...

    async def retrieve_session(self, session_id: str) -> CheckoutSession: ...


def _payment_intent_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return getattr(value, "id", None) or (value.get("id") if isinstance(value, dict) else None)


def session_from_stripe(obj: Any) -> CheckoutSession:
    customer_email = obj.get("customer_email")
    details = obj.get("customer_details")
    if not customer_email and details:
        customer_email = details.get("email")
    metadata = obj.get("metadata") or {}
    return CheckoutSession(
        session_id=obj["id"],
        url=obj.get("url"),
        status=obj.get("status"),
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
        customer_email=customer_email,
        amount_total=obj.get("amount_total"),
        currency=obj.get("currency"),
        payment_intent_id=_payment_intent_id(obj.get("payment_intent")),
    )


class StripePaymentGateway:
    """Calls the Stripe API with a per-instance key; blocking SDK calls run in a worker thread."""

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    async def create_session(
        self,
        *,
        line_items: list[LineItem],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
    ) -> CheckoutSession:
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": item.currency,
                        "product_data": {"name": item.name},
                        "unit_amount": item.unit_amount,
                    },
                    "quantity": item.quantity,
                }
                for item in line_items
            ],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self._api_key, **params
            )
        except stripe.StripeError as exc:
            logger.warning("Checkout session creation failed: %s", exc)
            raise PaymentGatewayError(str(exc)) from exc
        return session_from_stripe(session)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.retrieve, session_id, api_key=self._api_key
            )
        except stripe.InvalidRequestError as exc:
            if exc.http_status == 404:
                raise CheckoutSessionNotFound(session_id) from exc
            raise PaymentGatewayError(str(exc)) from exc
        except stripe.StripeError as exc:
            logger.warning("Checkout session %s retrieval failed: %s", session_id, exc)
            raise PaymentGatewayError(str(exc)) from exc
        return session_from_stripe(session)
