"""Authentication event logging utilities.

Structured audit logging for the relay's auth stages:

- Logs authentication/authorization successes and failures
- NEVER logs credential values
- Uses ``extra`` fields so log shippers can index event_type and error_code

Usage:
    from medchat.core.auth.logging import log_auth_success, log_auth_failure
    from medchat.core.auth.models import ErrorCode

    log_auth_success(caller_id="user-1", endpoint="/medical-chat")
    log_auth_failure(error_code=ErrorCode.MISSING_ROLE, caller_id="user-1")
"""

import logging
from typing import Optional

from medchat.core.auth.models import ErrorCode

# Use module-level logger for authentication events
logger = logging.getLogger(__name__)


def log_auth_success(
    caller_id: Optional[str] = None,
    client_ip: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> None:
    """Log a caller that passed authentication and authorization.

    Args:
        caller_id: Resolved caller identity
        client_ip: Client IP address (for audit trail)
        endpoint: Requested endpoint (for context)
    """
    logger.info(
        "Authentication successful",
        extra={
            "event_type": "auth_success",
            "caller_id": caller_id,
            "client_ip": client_ip,
            "endpoint": endpoint,
        },
    )


def log_auth_failure(
    error_code: ErrorCode,
    caller_id: Optional[str] = None,
    client_ip: Optional[str] = None,
    endpoint: Optional[str] = None,
    detail: Optional[str] = None,
) -> None:
    """Log an authentication or authorization failure.

    Collaborator outages (identity or role store unreachable) are logged at
    ERROR; caller-side failures at WARNING.

    Args:
        error_code: The specific failure code
        caller_id: Caller identity when it was already resolved
        client_ip: Client IP address (for audit trail)
        endpoint: Requested endpoint (for context)
        detail: Additional detail for debugging. Must not contain credentials.
    """
    level = logging.WARNING
    if error_code in (ErrorCode.IDENTITY_UNAVAILABLE, ErrorCode.ROLE_LOOKUP_FAILED):
        level = logging.ERROR

    logger.log(
        level,
        "Authentication failed",
        extra={
            "event_type": "auth_failure",
            "error_code": error_code.value,
            "caller_id": caller_id,
            "client_ip": client_ip,
            "endpoint": endpoint,
            "detail": detail,
        },
    )
