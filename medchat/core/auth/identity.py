"""Identity and role-store collaborators.

The relay never validates credentials or stores roles itself. It asks two
external services:

- IdentityProvider: exchanges a bearer credential for a caller identity
- RoleStore: lists the roles held by a caller id (read-only)

The Supabase implementations talk to the hosted auth (``/auth/v1/user``) and
REST (``/rest/v1/user_roles``) endpoints over a shared httpx.AsyncClient.
Both raise AuthenticationFailed with a code that tells the relay whether the
caller or the collaborator is at fault.
"""

from abc import ABC, abstractmethod
from typing import FrozenSet, Optional
import logging

import httpx
from pydantic import ValidationError

from medchat.core.auth.models import AuthenticationFailed, ErrorCode, Identity

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """Abstract interface for credential → identity resolution."""

    @abstractmethod
    async def resolve(self, credential: str) -> Identity:
        """Resolve a bearer credential to the caller identity.

        Raises:
            AuthenticationFailed: INVALID_TOKEN if the credential is rejected
                or expired, IDENTITY_UNAVAILABLE if the service cannot answer
        """
        pass


class RoleStore(ABC):
    """Abstract interface for read-only role membership lookup."""

    @abstractmethod
    async def get_roles(self, caller_id: str) -> FrozenSet[str]:
        """Return the set of roles held by ``caller_id``.

        Raises:
            AuthenticationFailed: ROLE_LOOKUP_FAILED if the lookup itself fails
        """
        pass


class SupabaseIdentityProvider(IdentityProvider):
    """Resolve callers through the Supabase auth ``/auth/v1/user`` endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        auth_url: str,
        api_key: str = "",
        timeout: float = 10.0,
    ) -> None:
        self._client = client
        self._user_url = f"{auth_url.rstrip('/')}/auth/v1/user"
        self._api_key = api_key
        self._timeout = timeout

    async def resolve(self, credential: str) -> Identity:
        headers = {"Authorization": f"Bearer {credential}"}
        if self._api_key:
            headers["apikey"] = self._api_key

        try:
            response = await self._client.get(self._user_url, headers=headers, timeout=self._timeout)
        except httpx.TransportError as e:
            raise AuthenticationFailed(
                ErrorCode.IDENTITY_UNAVAILABLE,
                f"Identity service request failed: {type(e).__name__}",
            ) from e

        if response.status_code >= 500:
            raise AuthenticationFailed(
                ErrorCode.IDENTITY_UNAVAILABLE,
                f"Identity service returned {response.status_code}",
            )
        if response.status_code != 200:
            # 400/401/403: bad, expired or revoked credential
            raise AuthenticationFailed(
                ErrorCode.INVALID_TOKEN,
                f"Identity service rejected credential ({response.status_code})",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationFailed(
                ErrorCode.IDENTITY_UNAVAILABLE, "Identity service returned invalid JSON"
            ) from e

        caller_id: Optional[str] = data.get("id") if isinstance(data, dict) else None
        if not caller_id:
            raise AuthenticationFailed(ErrorCode.INVALID_TOKEN, "Identity response has no user id")

        try:
            return Identity(caller_id=caller_id, email=data.get("email"))
        except ValidationError as e:
            # Wrong field types mean a misbehaving service, not a bad credential
            raise AuthenticationFailed(
                ErrorCode.IDENTITY_UNAVAILABLE, "Identity service returned a malformed user"
            ) from e


class SupabaseRoleStore(RoleStore):
    """Look up roles in the ``user_roles`` table through Supabase REST.

    Rows are expected as ``[{"role": "admin"}, ...]``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        auth_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        table: str = "user_roles",
    ) -> None:
        self._client = client
        self._roles_url = f"{auth_url.rstrip('/')}/rest/v1/{table}"
        self._api_key = api_key
        self._timeout = timeout

    async def get_roles(self, caller_id: str) -> FrozenSet[str]:
        headers = {}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            response = await self._client.get(
                self._roles_url,
                params={"user_id": f"eq.{caller_id}", "select": "role"},
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TransportError as e:
            raise AuthenticationFailed(
                ErrorCode.ROLE_LOOKUP_FAILED,
                f"Role store request failed: {type(e).__name__}",
            ) from e

        if response.status_code != 200:
            raise AuthenticationFailed(
                ErrorCode.ROLE_LOOKUP_FAILED,
                f"Role store returned {response.status_code}",
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise AuthenticationFailed(ErrorCode.ROLE_LOOKUP_FAILED, "Role store returned invalid JSON") from e

        if not isinstance(rows, list):
            raise AuthenticationFailed(ErrorCode.ROLE_LOOKUP_FAILED, "Role store returned unexpected payload")

        roles = frozenset(
            row["role"] for row in rows if isinstance(row, dict) and isinstance(row.get("role"), str)
        )
        logger.debug(f"Resolved {len(roles)} role(s) for caller {caller_id}")
        return roles
