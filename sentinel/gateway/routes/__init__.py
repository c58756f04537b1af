# API Routes

from .health import router as health_router
from .mcp import router as mcp_router
from .tap import router as tap_router

__all__ = ["health_router", "mcp_router", "tap_router"]
