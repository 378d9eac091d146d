import json
import math

from ftm_backend.features.tags.models import Tag
from ftm_backend.routes.core.response import _json_response
from ftm_backend.shared import ErrorCode, Result


def test_json_response_sanitizes_non_finite_floats() -> None:
    response = _json_response(Result.Ok({"a": math.nan, "items": [1.0, math.inf, {"y": -math.inf}]}))
    data = json.loads(response.text)["data"]
    assert data["a"] is None
    assert data["items"][1] is None
    assert data["items"][2]["y"] is None


def test_json_response_serializes_models() -> None:
    tag = Tag(
        id=1,
        name="work",
        color="#FFFF00",
        font_color="#000000",
        parent_id=None,
        usage_count=2,
        created_at="2025-01-01T00:00:00.000Z",
        updated_at="2025-01-01T00:00:00.000Z",
    )
    payload = json.loads(_json_response(Result.Ok([tag])).text)
    assert payload["ok"] is True
    assert payload["data"][0]["name"] == "work"
    assert payload["data"][0]["usage_count"] == 2


def test_business_errors_are_http_200() -> None:
    response = _json_response(Result.Err(ErrorCode.CONFLICT, "Tag name already exists: work", name="work"))
    assert response.status == 200
    payload = json.loads(response.text)
    assert payload == {
        "ok": False,
        "data": None,
        "error": "Tag name already exists: work",
        "code": "CONFLICT",
        "meta": {"name": "work"},
    }
