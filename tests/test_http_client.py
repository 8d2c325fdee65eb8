from __future__ import annotations

import io
import json
from email.message import Message
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urlsplit
from urllib.request import Request

import pytest

from backend.videos.errors import ApiResponseError
from backend.videos.services.http_client import JsonApiClient


class _FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *_exc: object) -> None:
        return None


def _client() -> JsonApiClient:
    return JsonApiClient(
        base_url="https://api.vimeo.com",
        access_token="token-123",
        headers={"Accept": "application/vnd.vimeo.*+json;version=3.4"},
    )


def test_get_sends_bearer_token_and_query(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[Request] = []

    def _fake_urlopen(request: Request, timeout: float) -> _FakeResponse:
        _ = timeout
        captured.append(request)
        return _FakeResponse(json.dumps({"data": []}).encode("utf-8"))

    monkeypatch.setattr("backend.videos.services.http_client.urlopen", _fake_urlopen)

    payload = _client().get(
        "/me/videos",
        {"page": 2, "per_page": 10, "full_response": True, "fields": ["uri", "name"], "q": None},
    )

    assert payload == {"data": []}
    request = captured[0]
    parts = urlsplit(request.full_url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://api.vimeo.com/me/videos"
    assert parse_qs(parts.query) == {
        "page": ["2"],
        "per_page": ["10"],
        "full_response": ["1"],
        "fields": ["uri,name"],
    }
    assert request.get_header("Authorization") == "Bearer token-123"
    assert request.get_header("Accept") == "application/vnd.vimeo.*+json;version=3.4"


def test_get_maps_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_urlopen(request: Request, timeout: float) -> _FakeResponse:
        _ = timeout
        raise HTTPError(
            request.full_url,
            404,
            "Not Found",
            Message(),
            io.BytesIO(b'{"error": "Not found", "developer_message": "Video does not exist"}'),
        )

    monkeypatch.setattr("backend.videos.services.http_client.urlopen", _fake_urlopen)

    with pytest.raises(ApiResponseError, match="Video does not exist") as exc_info:
        _client().get("videos/1")

    assert exc_info.value.status_code == 404


def test_get_maps_transport_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_urlopen(request: Request, timeout: float) -> _FakeResponse:
        _ = (request, timeout)
        raise URLError("connection refused")

    monkeypatch.setattr("backend.videos.services.http_client.urlopen", _fake_urlopen)

    with pytest.raises(ApiResponseError, match="connection refused"):
        _client().get("me")


def test_get_rejects_non_object_bodies(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_urlopen(request: Request, timeout: float) -> _FakeResponse:
        _ = (request, timeout)
        return _FakeResponse(b"[1, 2, 3]")

    monkeypatch.setattr("backend.videos.services.http_client.urlopen", _fake_urlopen)

    with pytest.raises(ApiResponseError):
        _client().get("me")


def test_get_rejects_error_payloads(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_urlopen(request: Request, timeout: float) -> _FakeResponse:
        _ = (request, timeout)
        return _FakeResponse(b'{"error": "Rate limit exceeded"}')

    monkeypatch.setattr("backend.videos.services.http_client.urlopen", _fake_urlopen)

    with pytest.raises(ApiResponseError, match="Rate limit exceeded"):
        _client().get("me")
