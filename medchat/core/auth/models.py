"""Data models for caller authentication and authorization.

This module defines:
- ErrorCode: Enum of authentication/authorization failure codes
- AuthenticationFailed: Exception raised by the auth stages
- Identity: Caller identity returned by the identity collaborator
- AuthContext: Identity plus role set, resolved once per request
"""

from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorCode(str, Enum):
    """Machine-readable codes for auth failures, used in audit logs.

    These never reach the caller directly; the relay maps them onto its
    error taxonomy.
    """

    MISSING_TOKEN = "MISSING_TOKEN"  # No Authorization header present
    MALFORMED_HEADER = "MALFORMED_HEADER"  # Header format is not "Bearer {token}"
    INVALID_TOKEN = "INVALID_TOKEN"  # Identity service rejected the credential
    IDENTITY_UNAVAILABLE = "IDENTITY_UNAVAILABLE"  # Identity service unreachable
    ROLE_LOOKUP_FAILED = "ROLE_LOOKUP_FAILED"  # Role store unreachable or errored
    MISSING_ROLE = "MISSING_ROLE"  # Caller lacks the required role


class AuthenticationFailed(Exception):
    """Raised by an auth stage with the code describing why it failed."""

    def __init__(self, error_code: ErrorCode, detail: str = ""):
        super().__init__(detail or error_code.value)
        self.error_code = error_code
        self.detail = detail


class Identity(BaseModel):
    """Caller identity resolved from a bearer credential."""

    model_config = ConfigDict(frozen=True)

    caller_id: str = Field(..., min_length=1)
    email: Optional[str] = None


class AuthContext(BaseModel):
    """Per-request authorization context.

    Built once per request and threaded explicitly through the relay
    pipeline; never stored at module level.

    Attributes:
        caller_id: Identity of the authenticated caller
        email: Caller email, when the identity service reports one
        roles: Role names the caller holds in the role store
    """

    model_config = ConfigDict(frozen=True)

    caller_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    roles: FrozenSet[str] = frozenset()

    def has_role(self, role: str) -> bool:
        return role in self.roles
