"""
Response utilities for route handlers.
"""

import math

from aiohttp import web

from ftm_backend.shared import Result


def _json_response(result: Result, status: int | None = None) -> web.Response:
    """
    Convert Result to JSON response.

    Args:
        result: Result object
        status: HTTP status code (optional, 200 when None)

    Returns:
        aiohttp web.Response
    """
    # Business / validation errors return HTTP 200 with {ok:false,...}.
    # Explicit status codes are reserved for unhandled server errors.
    if status is None:
        status = 200

    payload = _sanitize_json_payload(
        {
            "ok": result.ok,
            "data": _to_jsonable(result.data),
            "error": result.error,
            "code": result.code,
            "meta": result.meta,
        }
    )
    return web.json_response(payload, status=status)


def _to_jsonable(value):
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def _sanitize_json_payload(value):
    """
    Normalize payload values so they are always valid strict JSON.
    - Converts NaN/Infinity floats to None.
    - Recurses through dict/list/tuple containers.
    """
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _sanitize_json_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_json_payload(v) for v in value]
    return value
