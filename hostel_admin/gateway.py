"""
Lifecycle and dependency wiring for the backend gateway.
One gateway (and one HTTP client) is built at startup and shared by all views.
"""
from fastapi import Request
import logging

from hostel_admin.config import Settings, settings
from hostel_admin.services.backend_client import BackendGateway, create_http_client

logger = logging.getLogger(__name__)


def build_gateway(config: Settings = settings) -> BackendGateway:
    """Create a gateway bound to the configured backend URL."""
    gateway = BackendGateway(create_http_client(config))
    logger.info(
        f"Backend gateway configured for {config.BACKEND_URL} "
        f"(timeout: {config.BACKEND_TIMEOUT_SECONDS}s)"
    )
    return gateway


def get_gateway(request: Request) -> BackendGateway:
    """
    FastAPI dependency returning the gateway stored on the application.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(gateway: BackendGateway = Depends(get_gateway)):
            branches = await gateway.branches.list()
    """
    return request.app.state.gateway


async def close_gateway(gateway: BackendGateway) -> None:
    """Close the gateway's HTTP connections."""
    await gateway.aclose()
    logger.info("Backend gateway connections closed")
