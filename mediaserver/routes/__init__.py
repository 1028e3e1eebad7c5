"""API routes package."""

from mediaserver.routes.account_routes import router as account_router
from mediaserver.routes.video_routes import router as video_router

__all__ = ["account_router", "video_router"]
