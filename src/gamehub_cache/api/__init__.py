"""
API Package

HTTP surface of the cache layer: health and admin routes and the
application factory.
"""

from .admin_routes import router as admin_router
from .health_routes import router as health_router

__all__ = [
    "admin_router",
    "health_router",
]
