"""
Core utilities for route handlers.
"""
from .request_json import _read_json
from .response import _json_response
from .services import APP_KEY_SERVICES, _max_json_bytes, _require_services

__all__ = [
    "_json_response",
    "_read_json",
    "_require_services",
    "_max_json_bytes",
    "APP_KEY_SERVICES",
]
