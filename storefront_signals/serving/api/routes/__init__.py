"""
API Routes Module
"""
from .health import router as health_router
from .tracking import router as tracking_router
from .trending import router as trending_router
from .recommendations import router as recommendations_router
from .banners import router as banners_router
from .analytics import router as analytics_router
from .notifications import router as notifications_router

__all__ = [
    "health_router",
    "tracking_router",
    "trending_router",
    "recommendations_router",
    "banners_router",
    "analytics_router",
    "notifications_router",
]
