"""
Route registration system.
Coordinates all route handlers and registers them on an aiohttp application.
"""

from __future__ import annotations

from aiohttp import web

from ftm_backend.deps import close_services
from ftm_backend.observability import ensure_observability
from ftm_backend.shared import get_logger

from .core import APP_KEY_SERVICES
from .handlers import register_filesystem_routes, register_health_routes, register_tag_routes

logger = get_logger(__name__)


def register_all_routes() -> web.RouteTableDef:
    """
    Build the RouteTableDef holding every handler.
    This is the central registration point for all routes.
    """
    routes = web.RouteTableDef()
    register_health_routes(routes)
    register_filesystem_routes(routes)
    register_tag_routes(routes)

    logger.info("=" * 60)
    logger.info("Routes registered:")
    for route in routes:
        logger.info("  %s %s", route.method, route.path)
    logger.info("=" * 60)
    return routes


def create_app(services: dict) -> web.Application:
    """
    Create an aiohttp application bound to already-built services.

    The storage pool is closed when the application shuts down.
    """
    app = web.Application()
    app[APP_KEY_SERVICES] = services
    ensure_observability(app)
    app.add_routes(register_all_routes())

    async def _on_cleanup(app: web.Application) -> None:
        await close_services(app[APP_KEY_SERVICES])

    app.on_cleanup.append(_on_cleanup)
    return app
