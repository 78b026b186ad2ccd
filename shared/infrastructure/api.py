"""
API error mapping

Translates the domain error taxonomy into HTTP responses so every endpoint
answers with the same body shape:

    {"code": "...", "detail": "...", "retryable": false}
"""

from __future__ import annotations

import logging

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.exceptions import (
    AuthorizationError,
    DomainError,
    ExternalServiceError,
    InsufficientFundsError,
    NotFoundError,
    PaymentMismatchError,
    StateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Order matters: subclasses before their bases
STATUS_BY_ERROR = (
    (PaymentMismatchError, status.HTTP_202_ACCEPTED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (StateError, status.HTTP_409_CONFLICT),
    (InsufficientFundsError, status.HTTP_402_PAYMENT_REQUIRED),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: DomainError) -> int:
    for error_type, http_status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return http_status
    return status.HTTP_400_BAD_REQUEST


def error_body(exc: DomainError) -> dict:
    body = {
        "code": exc.code,
        "detail": exc.message or str(exc),
        "retryable": exc.retryable,
    }
    if isinstance(exc, PaymentMismatchError):
        body["needs_review"] = True
        body["detail"] = "Payment processed but needs support review"
    if isinstance(exc, InsufficientFundsError) and exc.balance is not None:
        body["balance"] = str(exc.balance)
        body["required"] = str(exc.required)
    return body


def domain_exception_handler(exc, context):
    """DRF ``EXCEPTION_HANDLER`` aware of :class:`DomainError`."""
    if isinstance(exc, DomainError):
        http_status = status_for(exc)
        view = context.get("view")
        log = logger.error if http_status >= 500 else logger.info
        log(f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'unknown view'}: {exc}")
        return Response(error_body(exc), status=http_status)
    return exception_handler(exc, context)
