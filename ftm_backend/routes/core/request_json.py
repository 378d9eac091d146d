"""
JSON request bodies for the `/ftm` endpoints.

Bodies are read under a byte limit (config `max_json_bytes`, never below
MIN_JSON_BYTES) and must decode to a JSON object; an empty body reads as `{}`.
"""

from __future__ import annotations

import json
from typing import Optional

from aiohttp import web

from ftm_backend.config import DEFAULT_MAX_JSON_BYTES
from ftm_backend.shared import ErrorCode, Result

MIN_JSON_BYTES = 1024


async def _read_json(request: web.Request, *, max_bytes: Optional[int] = None) -> Result[dict]:
    limit = max(MIN_JSON_BYTES, int(max_bytes) if max_bytes is not None else DEFAULT_MAX_JSON_BYTES)
    length_error = _content_length_error(request, limit)
    if length_error is not None:
        return length_error
    body = await _read_request_body_limited(request, limit)
    if not body.ok:
        return body  # type: ignore[return-value]
    return _decode_and_parse_json_dict(body.data or b"")


def _too_large(limit: int, size: int) -> Result[dict]:
    return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large ({size} > {limit} bytes)", limit=limit, size=size)


def _content_length_error(request: web.Request, limit: int) -> Optional[Result[dict]]:
    try:
        size = int(request.headers.get("Content-Length") or 0)
    except ValueError:
        return None
    return _too_large(limit, size) if size > limit else None


async def _read_request_body_limited(request: web.Request, limit: int) -> Result[bytes]:
    buf = bytearray()
    try:
        async for chunk in request.content.iter_any():
            buf.extend(chunk)
            if len(buf) > limit:
                return _too_large(limit, len(buf))  # type: ignore[return-value]
    except (OSError, ValueError) as exc:
        return Result.Err(ErrorCode.INVALID_JSON, f"Failed to read request body: {exc}")
    return Result.Ok(bytes(buf))


def _decode_and_parse_json_dict(body: bytes) -> Result[dict]:
    if not body:
        return Result.Ok({})
    try:
        parsed = json.loads(body.decode("utf-8"))
    except ValueError as exc:
        # UnicodeDecodeError is a ValueError
        return Result.Err(ErrorCode.INVALID_JSON, f"Invalid JSON body: {exc}")
    if not isinstance(parsed, dict):
        return Result.Err(ErrorCode.INVALID_JSON, "JSON body must be an object")
    return Result.Ok(parsed)
