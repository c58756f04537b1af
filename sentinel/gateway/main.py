"""
Sentinel Gateway Application

Paid, signed proxy in front of an MCP server: TAP signature verification,
a USD spend cap and x402 payment settlement guard every tool execution.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..mcp.client import MCPClient
from ..tap.keys import KeyResolver
from ..x402.facilitator import FacilitatorClient
from ..x402.policy import PriceFeed
from .core.config import Settings, get_settings
from .core.services import build_services
from .routes import health_router, mcp_router, tap_router
from .security.payment import PaymentRequired, payment_required_handler

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    services = app.state.services
    settings = services.settings
    logger.info(f"{settings.app_name} starting up...")
    logger.info(f"TAP verification: {'required' if settings.tap_required else 'optional'}")
    logger.info(f"Facilitator URL: {settings.facilitator_url}")
    logger.info(f"Upstream MCP URL: {settings.mcp_url}")

    sweeper = services.nonce_cache.start_sweeper(settings.tap_nonce_sweep_interval_sec)

    yield

    logger.info(f"{settings.app_name} shutting down...")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    await services.aclose()


def create_app(
    settings: Optional[Settings] = None,
    facilitator: Optional[FacilitatorClient] = None,
    price_feed: Optional[PriceFeed] = None,
    mcp_client: Optional[MCPClient] = None,
    key_resolver: Optional[KeyResolver] = None,
) -> FastAPI:
    """Build the gateway app; collaborators default to ones built from settings"""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="TAP-verified, x402-paid gateway for MCP tools",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = build_services(
        settings,
        facilitator=facilitator,
        price_feed=price_feed,
        mcp_client=mcp_client,
        key_resolver=key_resolver,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict this
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PaymentRequired, payment_required_handler)

    # Include API routers
    app.include_router(health_router)
    app.include_router(tap_router)
    app.include_router(mcp_router)
    return app


def run() -> None:
    """Console entry point"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sentinel.gateway.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
