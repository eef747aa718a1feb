"""Bearer credential extraction from the Authorization header.

The relay does not validate credentials itself; it only checks that the
header has the ``Bearer <credential>`` shape and hands the credential to the
identity collaborator.

Security Considerations:
- Never logs credential values
- Fails fast on missing or malformed headers, before any network call
"""

from typing import Optional

from medchat.core.auth.models import AuthenticationFailed, ErrorCode

BEARER_SCHEME = "bearer"


def extract_bearer_token(auth_header: Optional[str]) -> str:
    """Extract the credential from an ``Authorization: Bearer`` header.

    The scheme is matched case-insensitively. Surrounding whitespace around
    the credential is stripped.

    Args:
        auth_header: Raw Authorization header value, or None if absent

    Returns:
        str: The bearer credential

    Raises:
        AuthenticationFailed: MISSING_TOKEN when the header is absent,
            MALFORMED_HEADER when it is not ``Bearer <credential>``

    Examples:
        >>> extract_bearer_token("Bearer abc123")
        'abc123'
        >>> extract_bearer_token("bearer   abc123  ")
        'abc123'
    """
    if auth_header is None:
        raise AuthenticationFailed(ErrorCode.MISSING_TOKEN, "No Authorization header provided")

    scheme, _, credential = auth_header.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        raise AuthenticationFailed(ErrorCode.MALFORMED_HEADER, "Authorization scheme is not Bearer")

    credential = credential.strip()
    # A credential never contains whitespace; "Bearer a b" is malformed
    if not credential or any(c.isspace() for c in credential):
        raise AuthenticationFailed(ErrorCode.MALFORMED_HEADER, "Bearer credential is empty or malformed")

    return credential
