"""FastAPI dependency injection for application components.

Usage:
    from fastapi import Depends
    from medchat.dependencies import get_relay_service

    @app.post("/endpoint")
    async def endpoint(relay = Depends(get_relay_service)):
        ...

Tests replace the service with ``app.dependency_overrides[get_relay_service]``.
"""

from fastapi import Request

from medchat.relay.service import RelayService


def get_relay_service(request: Request) -> RelayService:
    """Get the relay service from application state.

    Args:
        request: FastAPI Request object with app.state access

    Returns:
        RelayService wired to the shared HTTP client

    Raises:
        RuntimeError: If the service was not initialized (app startup failed)
    """
    relay_service = getattr(request.app.state, "relay_service", None)
    if relay_service is None:
        raise RuntimeError(
            "Relay service not initialized. Application startup may have failed."
        )
    return relay_service
