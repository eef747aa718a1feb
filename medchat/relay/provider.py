"""Model provider client (pipeline stage 6).

Opens a streaming chat completions request against an OpenAI-compatible
gateway and hands the still-open httpx response back to the caller, who pipes
its body to the client untouched via ``relay_body``.

Non-success statuses are read, logged server-side and mapped onto the relay
taxonomy; the provider's body never reaches the caller.
"""

from typing import Any, AsyncIterator
import logging

import httpx

from medchat.relay.errors import provider_status_error

logger = logging.getLogger(__name__)

# Provider error bodies are logged up to this many characters
MAX_LOGGED_ERROR_BODY = 2000


class ProviderClient:
    """Streaming client for the chat completions endpoint.

    Args:
        client: Shared httpx.AsyncClient (owned by the application lifespan)
        completions_url: Full URL of the chat completions endpoint
        api_key: Provider API key, sent as a bearer credential
        timeout: Connect/read timeout in seconds. The read timeout applies
            between chunks, so long generations are not cut off.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        completions_url: str,
        api_key: str,
        timeout: float = 60.0,
    ) -> None:
        self._client = client
        self._completions_url = completions_url
        self._api_key = api_key
        self._timeout = timeout

    async def open_stream(self, payload: dict[str, Any]) -> httpx.Response:
        """Send ``payload`` with streaming enabled and return the open response.

        The caller owns the returned response and must close it
        (``relay_body`` does so when the stream ends).

        Raises:
            RelayError: RateLimited (429), PaymentRequired (402) or
                ProviderError for any other failure, including timeouts
        """
        request = self._client.build_request(
            "POST",
            self._completions_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                # Keep the body byte-identical to what the provider emits
                "Accept-Encoding": "identity",
            },
            timeout=self._timeout,
        )

        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            logger.error(f"AI gateway timeout after {self._timeout}s: {type(e).__name__}")
            raise provider_status_error(None) from e
        except httpx.TransportError as e:
            logger.error(f"AI gateway unreachable: {type(e).__name__}: {e}")
            raise provider_status_error(None) from e

        if response.is_success:
            logger.debug(f"AI gateway stream opened (status={response.status_code})")
            return response

        try:
            body = (await response.aread()).decode("utf-8", errors="replace")
        except httpx.TransportError:
            body = "<unreadable>"
        finally:
            await response.aclose()

        logger.error(
            f"AI gateway error: status={response.status_code} "
            f"body={body[:MAX_LOGGED_ERROR_BODY]}"
        )
        raise provider_status_error(response.status_code)


async def relay_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the provider body exactly as received, then close the response.

    A transport failure mid-stream ends the relayed body early; headers are
    already sent at that point, so the client sees a truncated stream.
    Cancellation (client disconnect) closes the upstream connection.
    """
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    except httpx.TransportError as e:
        logger.warning(f"AI gateway stream interrupted: {type(e).__name__}: {e}")
    finally:
        await response.aclose()
