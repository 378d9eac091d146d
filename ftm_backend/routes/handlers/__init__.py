"""
Route handlers.
"""
from .filesystem import register_filesystem_routes
from .health import register_health_routes
from .tags import register_tag_routes

__all__ = [
    "register_filesystem_routes",
    "register_health_routes",
    "register_tag_routes",
]
