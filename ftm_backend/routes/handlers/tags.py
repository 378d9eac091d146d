"""
Tag endpoints: list, search, create, modify and attach to files.
"""

from aiohttp import web

from ftm_backend.shared import ErrorCode, Patch, Result, TagListMode
from ftm_backend.utils import parse_int

from ..core import _json_response, _max_json_bytes, _read_json, _require_services


def _query_limit(request: web.Request) -> Result[int | None]:
    raw = request.query.get("limit")
    if raw is None or raw == "":
        return Result.Ok(None)
    limit = parse_int(raw)
    if limit is None:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid limit: {raw!r}")
    return Result.Ok(limit)


def _parent_patch(payload: dict) -> Result[Patch[int]]:
    patch = Patch.from_mapping(payload, "parent_id", "parentId")
    if patch.is_unset or patch.is_null:
        return Result.Ok(patch)
    value = parse_int(patch.value)
    if value is None:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid parent id: {patch.value!r}")
    return Result.Ok(Patch.of(value))


def register_tag_routes(routes: web.RouteTableDef) -> None:
    """Register tag routes."""

    @routes.get("/ftm/tags")
    async def list_tags(request):
        """List tags by usage (`mode=most_used`) or recency (`mode=recent_used`)."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        limit = _query_limit(request)
        if not limit.ok:
            return _json_response(limit)
        mode = TagListMode.parse(request.query.get("mode"))
        if mode is None:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, f"Unknown mode: {request.query.get('mode')}"))
        result = await svc["tags"].alist(limit.data, mode)
        return _json_response(result)

    @routes.get("/ftm/tags/search")
    async def search_tags(request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        limit = _query_limit(request)
        if not limit.ok:
            return _json_response(limit)
        result = await svc["tags"].asearch(request.query.get("keyword", ""), limit.data)
        return _json_response(result)

    @routes.post("/ftm/tags/create")
    async def create_tag(request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        name = body.data.get("name")
        if not isinstance(name, str):
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Tag name is required"))
        return _json_response(await svc["tags"].acreate(name))

    @routes.post("/ftm/tags/modify")
    async def modify_tag(request):
        """
        Partially update a tag.

        Absent keys leave a field alone; an explicit `null` clears color,
        font color or parent.
        """
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        payload = body.data

        tag_id = parse_int(payload.get("id", payload.get("tag_id")))
        if tag_id is None:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Tag id is required"))
        name = payload.get("name")
        if name is not None and not isinstance(name, str):
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Tag name must be a string"))
        parent = _parent_patch(payload)
        if not parent.ok:
            return _json_response(parent)

        result = await svc["tags"].amodify(
            tag_id,
            name=name,
            color=Patch.from_mapping(payload, "color"),
            font_color=Patch.from_mapping(payload, "font_color", "fontColor"),
            parent_id=parent.data,
        )
        return _json_response(result)

    @routes.post("/ftm/tags/attach")
    async def attach_tag(request):
        """Attach one tag to a batch of paths."""
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        body = await _read_json(request, max_bytes=_max_json_bytes(svc))
        if not body.ok:
            return _json_response(body)
        payload = body.data
        result = await svc["file_ops"].aadd_tags_to_files(
            payload.get("paths"), payload.get("tag_id", payload.get("tagId"))
        )
        return _json_response(result)
