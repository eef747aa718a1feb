"""Gated relay between the chat client and the model provider.

Each request runs a linear pipeline; every stage is awaited in order and
fails closed by raising RelayError, which ends the request immediately:

1. Authenticate   - bearer credential present and well-formed      (401)
2. Resolve        - identity collaborator accepts the credential   (401 / 500)
3. Authorize      - role store lists the required role             (403 / 500)
4. Validate       - body decodes and respects the payload bounds   (400)
5. Compose        - system instruction + user turn (text or image)
6. Dispatch       - streaming provider call, status mapping        (429 / 402 / 500)

Validation needs no I/O and executes between stages 1 and 2, so an invalid
body never reaches a collaborator.

On success the open provider response is returned; its body is relayed to
the caller verbatim. The service holds no per-request state: the resolved
AuthContext is passed along explicitly.
"""

from typing import Optional
import logging

import httpx

from medchat.core.auth import (
    AuthContext,
    AuthenticationFailed,
    ErrorCode,
    IdentityProvider,
    RoleStore,
    extract_bearer_token,
)
from medchat.core.auth.logging import log_auth_failure, log_auth_success
from medchat.models import RelayRequest
from medchat.relay.compose import build_provider_payload
from medchat.relay.errors import (
    INVALID_SESSION_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    authorization_unavailable,
    forbidden,
    unauthenticated,
)
from medchat.relay.provider import ProviderClient
from medchat.relay.validation import decode_json_body, parse_relay_request

logger = logging.getLogger(__name__)

RELAY_ENDPOINT = "/medical-chat"


class RelayService:
    """Authenticates, authorizes, validates and forwards medical chat requests.

    Args:
        identity_provider: Resolves bearer credentials to caller identities
        role_store: Read-only role membership lookup
        provider: Streaming model provider client
        model: Provider model identifier
        required_role: Role a caller must hold to use the relay
        max_image_bytes: Maximum decoded size of an inline image
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        role_store: RoleStore,
        provider: ProviderClient,
        model: str,
        required_role: str = "admin",
        max_image_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self._identity_provider = identity_provider
        self._role_store = role_store
        self._provider = provider
        self._model = model
        self._required_role = required_role
        self._max_image_bytes = max_image_bytes

    def authenticate(self, auth_header: Optional[str], client_ip: Optional[str] = None) -> str:
        """Stage 1: extract the bearer credential; no network involved.

        Raises:
            RelayError: Unauthenticated
        """
        try:
            return extract_bearer_token(auth_header)
        except AuthenticationFailed as e:
            log_auth_failure(e.error_code, client_ip=client_ip, endpoint=RELAY_ENDPOINT, detail=e.detail)
            raise unauthenticated(MISSING_CREDENTIAL_MESSAGE) from e

    async def authorize(self, credential: str, client_ip: Optional[str] = None) -> AuthContext:
        """Run stages 2-3 and return the caller's AuthContext.

        Raises:
            RelayError: Unauthenticated, AuthorizationUnavailable or Forbidden
        """
        # Stage 2: identity resolution
        try:
            identity = await self._identity_provider.resolve(credential)
        except AuthenticationFailed as e:
            log_auth_failure(e.error_code, client_ip=client_ip, endpoint=RELAY_ENDPOINT, detail=e.detail)
            if e.error_code == ErrorCode.IDENTITY_UNAVAILABLE:
                raise authorization_unavailable() from e
            raise unauthenticated(INVALID_SESSION_MESSAGE) from e

        # Stage 3: role membership
        try:
            roles = await self._role_store.get_roles(identity.caller_id)
        except AuthenticationFailed as e:
            log_auth_failure(
                ErrorCode.ROLE_LOOKUP_FAILED,
                caller_id=identity.caller_id,
                client_ip=client_ip,
                endpoint=RELAY_ENDPOINT,
                detail=e.detail,
            )
            raise authorization_unavailable() from e

        context = AuthContext(caller_id=identity.caller_id, email=identity.email, roles=roles)
        if not context.has_role(self._required_role):
            log_auth_failure(
                ErrorCode.MISSING_ROLE,
                caller_id=context.caller_id,
                client_ip=client_ip,
                endpoint=RELAY_ENDPOINT,
                detail=f"Required role '{self._required_role}' not held",
            )
            raise forbidden()

        log_auth_success(caller_id=context.caller_id, client_ip=client_ip, endpoint=RELAY_ENDPOINT)
        return context

    def validate(self, raw_body: bytes) -> RelayRequest:
        """Stage 4: decode and bound-check the request body."""
        return parse_relay_request(decode_json_body(raw_body), self._max_image_bytes)

    async def open_relay(
        self,
        auth_header: Optional[str],
        raw_body: bytes,
        client_ip: Optional[str] = None,
    ) -> httpx.Response:
        """Run the whole pipeline and return the open provider response.

        Args:
            auth_header: Raw Authorization header (None if absent)
            raw_body: Undecoded request body
            client_ip: Caller address, for audit logs only

        Returns:
            httpx.Response: Successful streaming provider response; the
            caller must relay and close it

        Raises:
            RelayError: From whichever stage failed first
        """
        credential = self.authenticate(auth_header, client_ip=client_ip)
        request = self.validate(raw_body)
        context = await self.authorize(credential, client_ip=client_ip)

        payload = build_provider_payload(request, self._model)
        logger.info(
            f"Relaying chat for caller={context.caller_id} "
            f"persona={request.doctor_type or 'default'} "
            f"image={'yes' if request.has_image else 'no'}"
        )
        return await self._provider.open_stream(payload)
