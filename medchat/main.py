"""FastAPI application for the medical chat relay."""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
import httpx
import logging

from medchat import __version__
from medchat.config import settings
from medchat.core.auth import SupabaseIdentityProvider, SupabaseRoleStore
from medchat.dependencies import get_relay_service
from medchat.models import ErrorEnvelope, HealthResponse
from medchat.relay import ErrorKind, ProviderClient, RelayError, RelayService, relay_body
from medchat.relay.errors import PROVIDER_ERROR_MESSAGE
from medchat.relay.service import RELAY_ENDPOINT

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class RelayStreamingResponse(StreamingResponse):
    """StreamingResponse that always closes the upstream provider response.

    ``relay_body`` closes it once iteration starts; this covers a send that
    fails before the body generator ever runs.
    """

    def __init__(self, upstream: httpx.Response, **kwargs):
        super().__init__(relay_body(upstream), **kwargs)
        self.upstream = upstream

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.upstream.aclose()


# Attached to every relay response, including errors and preflight
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown.

    One pooled httpx.AsyncClient is shared by the identity, role-store and
    provider collaborators and closed on shutdown.
    """
    logger.info("🚀 Starting medical chat relay...")

    # ========================================================================
    # STARTUP
    # ========================================================================
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.provider_timeout_seconds))
    app.state.http_client = http_client

    identity_provider = SupabaseIdentityProvider(
        http_client,
        auth_url=settings.auth_url,
        api_key=settings.auth_api_key,
        timeout=settings.auth_timeout_seconds,
    )
    role_store = SupabaseRoleStore(
        http_client,
        auth_url=settings.auth_url,
        api_key=settings.auth_api_key,
        timeout=settings.auth_timeout_seconds,
    )
    provider = ProviderClient(
        http_client,
        completions_url=settings.completions_url,
        api_key=settings.provider_api_key,
        timeout=settings.provider_timeout_seconds,
    )
    app.state.relay_service = RelayService(
        identity_provider=identity_provider,
        role_store=role_store,
        provider=provider,
        model=settings.model_name,
        required_role=settings.required_role,
        max_image_bytes=settings.max_image_bytes,
    )

    logger.info("🎉 Relay startup complete!")
    logger.info(f"   Model: {settings.model_name}")
    logger.info(f"   Required role: {settings.required_role}")

    # ========================================================================
    # YIELD TO APP
    # ========================================================================
    yield

    # ========================================================================
    # SHUTDOWN
    # ========================================================================
    logger.info("👋 Shutting down relay...")
    await http_client.aclose()
    logger.info("✅ Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Medical Chat Relay",
    description="Authenticated streaming relay between the patient-record chat and the model provider",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Render any RelayError as the ``{"error": ...}`` envelope."""
    result = exc.to_result()
    logger.warning(f"⚠️ Relay request rejected: kind={result.kind} status={result.status_code}")
    return JSONResponse(
        status_code=result.status_code,
        content=ErrorEnvelope(error=result.message).model_dump(),
        headers=CORS_HEADERS,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint.

    Returns:
        Health status and version
    """
    return HealthResponse(status="healthy", version=__version__)


@app.options(RELAY_ENDPOINT)
async def medical_chat_preflight() -> Response:
    """Answer CORS preflight with permissive headers and no body."""
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post(RELAY_ENDPOINT, response_model=None)
async def medical_chat(
    request: Request,
    relay: RelayService = Depends(get_relay_service),
):
    """Relay a medical question to the model provider as an SSE stream.

    The body is read raw; the service checks the credential shape first,
    then validates the body before any identity or role lookup.

    Returns:
        StreamingResponse (``text/event-stream``) carrying the provider's
        events unchanged

    Raises:
        RelayError: Any taxonomy failure; rendered by relay_error_handler
    """
    client_ip = request.client.host if request.client else None

    try:
        raw_body = await request.body()
        provider_response = await relay.open_relay(
            request.headers.get("authorization"),
            raw_body,
            client_ip=client_ip,
        )
    except RelayError:
        raise
    except Exception as e:
        logger.error(f"❌ Medical chat error: {e}", exc_info=True)
        raise RelayError(ErrorKind.PROVIDER_ERROR, PROVIDER_ERROR_MESSAGE) from e

    return RelayStreamingResponse(
        provider_response,
        media_type="text/event-stream",
        headers={
            **CORS_HEADERS,
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
        timeout_keep_alive=120,
    )
