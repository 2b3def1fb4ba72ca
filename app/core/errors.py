from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for per-request failures surfaced to the caller."""

    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, *, details: dict | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class Unauthenticated(DomainError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized access"


class Forbidden(DomainError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class ValidationFailed(DomainError):
    status_code = 422
    code = "validation_error"
    default_message = "Validation failed"


class InvalidTransition(DomainError):
    status_code = 409
    code = "invalid_transition"
    default_message = "Status transition is not allowed"


class PaymentIncomplete(DomainError):
    status_code = 400
    code = "payment_incomplete"
    default_message = "Payment not completed"


class GatewayUnavailable(DomainError):
    status_code = 503
    code = "payment_gateway_unavailable"
    default_message = "Payment gateway is unavailable, please retry"


class ReconciliationFailure(DomainError):
    """Transient store/gateway fault; the caller should retry with the same session id."""

    status_code = 500
    code = "reconciliation_failure"
    default_message = "Payment processing failed, please retry"

    def __init__(self, message: str | None = None, *, details: dict | None = None) -> None:
        merged = {"retriable": True}
        merged.update(details or {})
        super().__init__(message, details=merged)


_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
}


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _as_details(details: Any) -> dict:
    if details is None:
        return {}
    if isinstance(details, dict):
        return details
    if isinstance(details, list):
        return {"errors": details}
    return {"detail": str(details)}


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Every failure leaves the API in the same ``{code, message, data, details}`` shape."""
    body = {"code": code, "message": message, "data": None, "details": _as_details(details)}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def _validation_message(errors: list[dict]) -> str:
    if not errors:
        return "Validation failed"
    first = errors[0] or {}
    msg = first.get("msg") or "Validation failed"
    # body/query/path prefixes are noise to the client
    field = ".".join(str(part) for part in first.get("loc") or [] if part not in {"body", "query", "path"})
    return f"{field}: {msg}" if field else str(msg)


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            exc.code,
            request.method,
            request.url.path,
            exc.message,
            extra={"context": exc.details},
        )
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, "http_error")
    detail = exc.detail
    if isinstance(detail, dict):
        return error_response(
            exc.status_code,
            detail.get("code") or code,
            detail.get("message") or _phrase(exc.status_code),
            detail.get("details"),
            headers=exc.headers,
        )
    if isinstance(detail, str):
        return error_response(exc.status_code, code, detail, headers=exc.headers)
    return error_response(exc.status_code, code, _phrase(exc.status_code), detail, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    return error_response(422, "validation_error", _validation_message(errors), {"errors": errors})


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    headers = exc.headers if isinstance(getattr(exc, "headers", None), dict) else None
    return error_response(429, "rate_limited", _phrase(429), getattr(exc, "detail", None), headers=headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app) -> None:
    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
