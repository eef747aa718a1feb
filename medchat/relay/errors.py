"""Closed error taxonomy of the medical chat relay.

Every failure the relay can report to a caller is one of the ErrorKind
members below, each with a fixed HTTP status. Stages raise RelayError at the
point they detect a failure; the FastAPI exception handler in main.py turns
it into the ``{"error": ...}`` envelope. Nothing is retried.
"""

from enum import Enum
from typing import Optional

from medchat.models import ErrorResult


class ErrorKind(str, Enum):
    """Machine-readable kinds of relay failures."""

    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    AUTHORIZATION_UNAVAILABLE = "AuthorizationUnavailable"
    INVALID_INPUT = "InvalidInput"
    RATE_LIMITED = "RateLimited"
    PAYMENT_REQUIRED = "PaymentRequired"
    PROVIDER_ERROR = "ProviderError"


STATUS_CODES = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.AUTHORIZATION_UNAVAILABLE: 500,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.PAYMENT_REQUIRED: 402,
    ErrorKind.PROVIDER_ERROR: 500,
}

# Caller-facing messages for kinds whose wording never varies
MISSING_CREDENTIAL_MESSAGE = "Missing or malformed Authorization header"
INVALID_SESSION_MESSAGE = "Your session is invalid or has expired, please sign in again"
FORBIDDEN_MESSAGE = "You do not have permission to use the medical assistant"
AUTHORIZATION_UNAVAILABLE_MESSAGE = "Unable to verify permissions, please try again later"
RATE_LIMITED_MESSAGE = "Rate limit exceeded, please try again later."
PAYMENT_REQUIRED_MESSAGE = "Usage credits exhausted, please add credits to continue."
PROVIDER_ERROR_MESSAGE = "The AI service encountered an error"


class RelayError(Exception):
    """A relay failure classified into the closed taxonomy.

    Args:
        kind: Taxonomy member
        message: Human-readable message safe to return to the caller.
            Never include provider response bodies or credentials.
    """

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_result(self) -> ErrorResult:
        return ErrorResult(
            kind=self.kind.value,
            message=self.message,
            status_code=self.status_code,
        )

    def __repr__(self) -> str:
        return f"RelayError({self.kind.value}, {self.message!r})"


def unauthenticated(message: str = MISSING_CREDENTIAL_MESSAGE) -> RelayError:
    return RelayError(ErrorKind.UNAUTHENTICATED, message)


def forbidden() -> RelayError:
    return RelayError(ErrorKind.FORBIDDEN, FORBIDDEN_MESSAGE)


def authorization_unavailable() -> RelayError:
    return RelayError(ErrorKind.AUTHORIZATION_UNAVAILABLE, AUTHORIZATION_UNAVAILABLE_MESSAGE)


def invalid_input(field: str, reason: str) -> RelayError:
    """InvalidInput naming the offending field, e.g. ``patientInfo.name``."""
    return RelayError(ErrorKind.INVALID_INPUT, f"Invalid input: {field} {reason}")


def provider_status_error(status_code: Optional[int]) -> RelayError:
    """Map a provider HTTP status to the caller-facing taxonomy.

    Args:
        status_code: Provider response status, or None when no response arrived

    Returns:
        RateLimited for 429, PaymentRequired for 402, ProviderError otherwise
    """
    if status_code == 429:
        return RelayError(ErrorKind.RATE_LIMITED, RATE_LIMITED_MESSAGE)
    if status_code == 402:
        return RelayError(ErrorKind.PAYMENT_REQUIRED, PAYMENT_REQUIRED_MESSAGE)
    return RelayError(ErrorKind.PROVIDER_ERROR, PROVIDER_ERROR_MESSAGE)
