"""API routes module."""

from genealogy_buddy.api.routes.analyses import router as analyses_router
from genealogy_buddy.api.routes.health import router as health_router
from genealogy_buddy.api.routes.subscription import router as subscription_router
from genealogy_buddy.api.routes.tiers import router as tiers_router
from genealogy_buddy.api.routes.tools import router as tools_router
from genealogy_buddy.api.routes.usage import router as usage_router

__all__ = [
    "analyses_router",
    "health_router",
    "subscription_router",
    "tiers_router",
    "tools_router",
    "usage_router",
]
