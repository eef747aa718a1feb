"""Authentication module for the medical chat relay.

This module provides:
- Bearer credential extraction from the Authorization header
- Identity and role-store collaborator interfaces (plus Supabase clients)
- Authentication event logging
- AuthContext, the per-request identity + role value

Public API:
- extract_bearer_token: Parse ``Authorization: Bearer <credential>``
- IdentityProvider / RoleStore: Collaborator interfaces
- AuthContext, Identity: Resolved caller data
- AuthenticationFailed, ErrorCode: Failure signalling
"""

from medchat.core.auth.bearer_token import extract_bearer_token
from medchat.core.auth.identity import (
    IdentityProvider,
    RoleStore,
    SupabaseIdentityProvider,
    SupabaseRoleStore,
)
from medchat.core.auth.models import AuthContext, AuthenticationFailed, ErrorCode, Identity

__all__ = [
    "extract_bearer_token",
    "IdentityProvider",
    "RoleStore",
    "SupabaseIdentityProvider",
    "SupabaseRoleStore",
    "AuthContext",
    "AuthenticationFailed",
    "ErrorCode",
    "Identity",
]
