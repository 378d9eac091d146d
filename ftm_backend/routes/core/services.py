"""
Service lookup for route handlers.

Services are built once by `deps.build_services()` and stored on the aiohttp
application; handlers fetch them per request.
"""

from __future__ import annotations

from typing import Any, Optional

from aiohttp import web

from ftm_backend.shared import ErrorCode, Result

APP_KEY_SERVICES: web.AppKey[dict] = web.AppKey("ftm_services", dict)


def _require_services(request: web.Request) -> tuple[Optional[dict[str, Any]], Optional[Result[Any]]]:
    svc = request.app.get(APP_KEY_SERVICES)
    if not svc:
        return None, Result.Err(ErrorCode.SERVICE_UNAVAILABLE, "Services are not initialized")
    return svc, None


def _max_json_bytes(svc: dict[str, Any]) -> Optional[int]:
    config = svc.get("config")
    return getattr(config, "max_json_bytes", None)
