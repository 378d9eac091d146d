"""
Health check endpoints.
"""
import asyncio

from aiohttp import web

from ftm_backend.shared import ErrorCode, Result, get_logger

from ..core import _json_response, _require_services

HEALTH_TIMEOUT_S = 10.0
logger = get_logger(__name__)


def register_health_routes(routes: web.RouteTableDef) -> None:
    """Register health and diagnostics routes."""

    @routes.get("/ftm/health")
    async def health(request):
        """Get health status."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        try:
            result = await asyncio.wait_for(svc["health"].astatus(), timeout=HEALTH_TIMEOUT_S)
        except asyncio.TimeoutError:
            logger.warning("Health status timed out after %ss", HEALTH_TIMEOUT_S)
            result = Result.Err(ErrorCode.TIMEOUT, "Health status timed out")
        return _json_response(result)
