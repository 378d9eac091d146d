"""
Filesystem browsing and batch file operation endpoints.
"""

from aiohttp import web

from ftm_backend.shared import ErrorCode, Result, get_logger
from ftm_backend.utils import parse_bool

from ..core import _json_response, _max_json_bytes, _read_json, _require_services

logger = get_logger(__name__)


def _target_dir(body: dict):
    return body.get("target_dir", body.get("targetDir"))


def register_filesystem_routes(routes: web.RouteTableDef) -> None:
    """Register directory listing and file operation routes."""

    @routes.post("/ftm/fs/list")
    async def list_directory(request):
        """List one directory, or the drive roots for `drives:`."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        result = await svc["browser"].list_directory(body.data.get("path"))
        return _json_response(result)

    @routes.get("/ftm/fs/roots")
    async def list_roots(request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        return _json_response(await svc["browser"].list_roots())

    @routes.get("/ftm/fs/home")
    async def home_directory(request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        return _json_response(svc["browser"].home_directory())

    @routes.post("/ftm/fs/exists")
    async def exists_as_directory(request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        exists = await svc["browser"].exists_as_directory(body.data.get("path"))
        return _json_response(Result.Ok(exists))

    @routes.post("/ftm/fs/move")
    async def move_batch(request):
        """Move paths into a target directory."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        result = await svc["file_ops"].amove(body.data.get("paths"), _target_dir(body.data))
        return _json_response(result)

    @routes.post("/ftm/fs/copy")
    async def copy_batch(request):
        """Copy paths into a target directory."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        result = await svc["file_ops"].acopy(body.data.get("paths"), _target_dir(body.data))
        return _json_response(result)

    @routes.post("/ftm/fs/rename")
    async def rename(request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        payload = body.data
        result = await svc["file_ops"].arename(
            payload.get("old_path", payload.get("oldPath")),
            payload.get("new_name", payload.get("newName")),
        )
        return _json_response(result)

    @routes.post("/ftm/fs/delete")
    async def delete_batch(request):
        """Delete paths from disk and soft-delete their records."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        result = await svc["file_ops"].adelete(body.data.get("paths"))
        if not result.ok:
            logger.warning("Delete batch failed: [%s] %s", result.code, result.error)
        return _json_response(result)

    @routes.post("/ftm/files/reconcile")
    async def reconcile(request):
        """Report (and optionally soft-delete) records whose path is gone."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        apply = body.data.get("apply", False)
        if not isinstance(apply, (bool, str, int)):
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "apply must be a boolean"))
        result = await svc["reconciler"].ascan(apply=parse_bool(apply))
        return _json_response(result)
