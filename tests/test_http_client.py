from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from adapters.http_client import (
    extract_error_message,
    filename_from_response,
    unwrap_envelope,
)
from core.config import AppSettings, AuthTransport
from core.domain.errors import (
    GENERIC_FAILURE,
    AuthExpired,
    NetworkFailure,
    RequestTimeout,
    ServerFailure,
    ValidationFailure,
)
from core.domain.models import Session

from conftest import BASE_URL, json_response, make_api


def _call(handler, *, method="GET", path="/api/cases", key="data", **kwargs):
    async def scenario():
        async with make_api(handler, **kwargs) as api:
            return await api.request_envelope(method, path, key=key)

    return asyncio.run(scenario())


def test_success_envelope_returns_data() -> None:
    handler = lambda request: json_response({"success": True, "data": [{"id": 1}]})

    assert _call(handler) == [{"id": 1}]


def test_bespoke_envelope_key() -> None:
    handler = lambda request: json_response({"success": True, "cases": [{"id": "c1"}], "total": 1})

    assert _call(handler, key="cases") == [{"id": "c1"}]


def test_401_is_auth_expired() -> None:
    handler = lambda request: json_response({"success": False, "message": "Token expired"}, 401)

    with pytest.raises(AuthExpired) as info:
        _call(handler)

    assert info.value.status_code == 401
    assert info.value.server_message == "Token expired"


def test_401_without_body_still_has_login_message() -> None:
    handler = lambda request: httpx.Response(401)

    with pytest.raises(AuthExpired) as info:
        _call(handler)

    assert info.value.message == "Please log in to access this page"


def test_4xx_is_validation_failure_with_server_message() -> None:
    handler = lambda request: json_response({"success": False, "message": "Name already exists"}, 409)

    with pytest.raises(ValidationFailure) as info:
        _call(handler, method="POST")

    assert info.value.server_message == "Name already exists"
    assert info.value.retryable is False


def test_4xx_without_message_uses_generic_text() -> None:
    handler = lambda request: httpx.Response(400, content=b"<html>bad</html>")

    with pytest.raises(ValidationFailure) as info:
        _call(handler)

    assert info.value.server_message is None
    assert info.value.message == GENERIC_FAILURE


def test_5xx_is_server_failure() -> None:
    handler = lambda request: json_response({"error": "database unavailable"}, 503)

    with pytest.raises(ServerFailure) as info:
        _call(handler)

    assert info.value.status_code == 503


def test_success_false_envelope_is_validation_failure() -> None:
    handler = lambda request: json_response({"success": False, "error": "Invalid status"})

    with pytest.raises(ValidationFailure) as info:
        _call(handler)

    assert info.value.server_message == "Invalid status"


@pytest.mark.parametrize(
    "body,expected",
    [
        ({"success": False, "message": {"id": "m1"}, "error": "Failed to save"}, "Failed to save"),
        ({"success": False, "message": {"message": "Duplicate name"}}, "Duplicate name"),
        ({"success": False, "message": ["bad"], "error": {"code": 7}}, GENERIC_FAILURE),
    ],
)
def test_success_false_with_non_text_message(body, expected) -> None:
    handler = lambda request: json_response(body)

    with pytest.raises(ValidationFailure) as info:
        _call(handler)

    assert info.value.message == expected


def test_error_body_with_object_message_falls_back_to_error() -> None:
    handler = lambda request: json_response({"message": {"id": "m1"}, "error": "Not allowed"}, 403)

    with pytest.raises(ValidationFailure) as info:
        _call(handler)

    assert info.value.server_message == "Not allowed"


@pytest.mark.parametrize(
    "payload",
    [[{"id": 1}], {"data": []}, {"success": "yes", "data": []}, "ok"],
)
def test_malformed_envelope_is_server_failure(payload) -> None:
    handler = lambda request: json_response(payload)

    with pytest.raises(ServerFailure):
        _call(handler)


def test_non_json_success_body_is_server_failure() -> None:
    handler = lambda request: httpx.Response(200, content=b"<html>maintenance</html>")

    with pytest.raises(ServerFailure):
        _call(handler)


def test_timeout_is_request_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(RequestTimeout) as info:
        _call(handler)

    assert isinstance(info.value, NetworkFailure)


def test_transport_error_is_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkFailure) as info:
        _call(handler)

    assert not isinstance(info.value, RequestTimeout)


def test_bearer_transport_sends_authorization_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return json_response({"success": True, "data": []})

    _call(handler, session=Session(token="abc"))

    assert seen[0].headers["authorization"] == "Bearer abc"
    assert seen[0].headers["accept"] == "application/json"
    assert str(seen[0].url).startswith(BASE_URL)


def test_cookie_transport_sends_session_cookie_only() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return json_response({"success": True, "data": []})

    settings = AppSettings(api_base_url=BASE_URL, auth_transport=AuthTransport.COOKIE)
    _call(handler, settings=settings, session=Session(token="abc"))

    assert "authorization" not in seen[0].headers
    assert f"{settings.session_cookie_name}=abc" in seen[0].headers.get("cookie", "")


def test_empty_query_params_are_dropped() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return json_response({"success": True, "data": []})

    async def scenario():
        async with make_api(handler) as api:
            await api.request("GET", "/api/services/payment-requests", params={"region": "", "category": "TAX", "x": None})

    asyncio.run(scenario())

    assert dict(seen[0].url.params) == {"category": "TAX"}


def test_download_uses_content_disposition(tmp_path: Path) -> None:
    handler = lambda request: httpx.Response(
        200,
        content=b"a,b\n",
        headers={"content-disposition": "attachment; filename=\"lawyers-report.csv\""},
    )

    async def scenario():
        async with make_api(handler) as api:
            return await api.download("/api/lawyers/reports/export", default_filename="lawyers.csv")

    assert asyncio.run(scenario()) == ("lawyers-report.csv", b"a,b\n")


def test_upload_sends_single_file_field(tmp_path: Path) -> None:
    source = tmp_path / "import.csv"
    source.write_text("name\nTax\n", encoding="utf-8")
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return json_response({"success": True, "data": {"imported": 1}})

    async def scenario():
        async with make_api(handler) as api:
            return await api.upload("/api/specializations/import", source)

    assert asyncio.run(scenario()) == {"imported": 1}
    assert seen[0].headers["content-type"].startswith("multipart/form-data")
    assert b'name="file"; filename="import.csv"' in seen[0].content


def test_helpers() -> None:
    assert unwrap_envelope({"success": True, "data": 1}) == 1
    assert extract_error_message(httpx.Response(400, json={"error": {"message": "nested"}})) == "nested"
    assert filename_from_response(httpx.Response(200), "fallback.csv") == "fallback.csv"
