"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.auth import router as auth_router
from routes.users import router as users_router
from routes.sku_mappings import router as sku_mappings_router
from routes.uploads import router as uploads_router
from routes.reports import router as reports_router

__all__ = [
    "auth_router",
    "users_router",
    "sku_mappings_router",
    "uploads_router",
    "reports_router",
]
