"""
Domain Error Taxonomy

Every failure the core surfaces to callers is one of these. Each carries a
stable machine ``code`` so the API layer and other collaborators can react
without parsing messages.

- ValidationError: malformed input, never retried
- NotFoundError: referenced record does not exist
- AuthorizationError: actor is not the booking's host/guest
- StateError: transition not allowed from the current state
- StaleStateError: state changed between read and write, caller may retry once
- InsufficientFundsError: wallet debit exceeds balance
- PaymentMismatchError: captured amount disagrees with booking total
- ExternalServiceError: gateway/payout API failure after bounded retries
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all errors raised by the booking core."""

    code = "domain_error"
    retryable = False

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(DomainError):
    code = "validation_error"


class NotFoundError(DomainError):
    code = "not_found"


class AuthorizationError(DomainError):
    code = "not_authorized"


class StateError(DomainError):
    code = "invalid_state"


class StaleStateError(StateError):
    code = "stale_state"
    retryable = True


class InsufficientFundsError(DomainError):
    code = "insufficient_funds"

    def __init__(self, message: str = "", *, balance=None, required=None):
        super().__init__(message)
        self.balance = balance
        self.required = required


class PaymentMismatchError(DomainError):
    """Captured amount is outside tolerance; booking is flagged for review."""

    code = "payment_mismatch"

    def __init__(self, message: str = "", *, booking_id=None, expected=None, captured=None):
        super().__init__(message)
        self.booking_id = booking_id
        self.expected = expected
        self.captured = captured


class ExternalServiceError(DomainError):
    code = "external_service_unavailable"
    retryable = True
