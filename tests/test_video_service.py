from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from backend.videos.errors import VideoNotFoundError
from backend.videos.models.token import AccessToken
from backend.videos.models.video import VideoThumbnail
from backend.videos.repositories.token_repository import TokenRepository
from backend.videos.services.gateway_registry import GatewayRegistry
from backend.videos.services.gateways.base import GatewayContext
from backend.videos.services.gateways.vimeo import VimeoGateway
from backend.videos.services.gateways.youtube import YouTubeGateway
from backend.videos.services.oauth_coordinator import OAuthCoordinator
from backend.videos.services.response_cache import ResponseCache
from backend.videos.services.thumbnails import ThumbnailUrlBuilder
from backend.videos.services.video_service import VideoService


class _FakeRequest:
    def __init__(self, response: dict[str, Any]) -> None:
        self._response = response

    def execute(self) -> dict[str, Any]:
        return self._response


class _FakeVideosResource:
    def __init__(self, calls: list[dict[str, Any]]) -> None:
        self._calls = calls

    def list(self, **kwargs: Any) -> _FakeRequest:
        self._calls.append(kwargs)
        video_id = str(kwargs["id"])
        return _FakeRequest(
            {
                "items": [
                    {
                        "id": video_id,
                        "snippet": {
                            "title": "Never Gonna Give You Up",
                            "channelId": "UCuAXFkgsw1L7xaCfnd5JJOw",
                            "channelTitle": "Rick Astley",
                            "publishedAt": "2009-10-25T06:57:33Z",
                            "thumbnails": {
                                "default": {
                                    "url": f"https://i.ytimg.com/vi/{video_id}/default.jpg",
                                    "width": 120,
                                }
                            },
                        },
                        "contentDetails": {"duration": "PT3M33S"},
                        "statistics": {"viewCount": "1500000000"},
                    }
                ]
            }
        )


class _FakeYouTubeClient:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def videos(self) -> _FakeVideosResource:
        return _FakeVideosResource(self.calls)


class _FakeAuthClient:
    def authorization_url(
        self,
        scope: Sequence[str],
        *,
        extra_params: Mapping[str, str] | None = None,
        state: str | None = None,
    ) -> str:
        return f"https://provider.example/authorize?state={state}"

    def exchange_code(self, code: str) -> AccessToken:
        return AccessToken(access_token=f"token-for-{code}", refresh_token="r-1")

    def refresh(self, refresh_token: str) -> AccessToken:
        return AccessToken(access_token="refreshed", refresh_token=refresh_token)


def _service(
    context: GatewayContext,
    youtube_client: _FakeYouTubeClient,
    *,
    signing_key: str | None = None,
) -> VideoService:
    registry = GatewayRegistry(context)
    registry.register(VimeoGateway(context, auth_client_factory=lambda _options: _FakeAuthClient()))
    registry.register(
        YouTubeGateway(
            context,
            auth_client_factory=lambda _options: _FakeAuthClient(),
            api_client_factory=lambda _token: youtube_client,
        )
    )
    return VideoService(
        registry=registry,
        oauth=context.oauth,
        thumbnails=ThumbnailUrlBuilder(base_url="/thumbnails", signing_key=signing_key),
    )


def test_get_video_by_url_resolves_youtube_links(
    gateway_context: GatewayContext,
    seed_token: Any,
) -> None:
    seed_token("youtube")
    youtube_client = _FakeYouTubeClient()
    service = _service(gateway_context, youtube_client)

    video = service.get_video_by_url("https://www.youtube.com/watch?v=dQw4w9WgXcQ")

    assert video.gateway_handle == "youtube"
    assert video.id == "dQw4w9WgXcQ"
    assert video.url == "http://youtu.be/dQw4w9WgXcQ"
    assert video.duration_readable == "03:33"
    assert youtube_client.calls[0]["id"] == "dQw4w9WgXcQ"


def test_get_video_by_url_without_matching_gateway(gateway_context: GatewayContext) -> None:
    service = _service(gateway_context, _FakeYouTubeClient())

    with pytest.raises(VideoNotFoundError):
        service.get_video_by_url("https://example.com/watch/123")


def test_get_video_by_url_skips_gateway_that_cannot_fetch(
    gateway_context: GatewayContext,
) -> None:
    youtube_client = _FakeYouTubeClient()
    service = _service(gateway_context, youtube_client)

    with pytest.raises(VideoNotFoundError):
        service.get_video_by_url("https://youtu.be/dQw4w9WgXcQ")
    assert youtube_client.calls == []


def test_login_stores_token_and_clears_cached_account(
    gateway_context: GatewayContext,
    response_cache: ResponseCache,
    token_repository: TokenRepository,
) -> None:
    service = _service(gateway_context, _FakeYouTubeClient())
    account_key = response_cache.account_cache_key("vimeo")
    response_cache.set(account_key, {"id": "old", "name": "Old Account"})

    service.login("Vimeo", "auth-code")

    assert response_cache.get(account_key) is None
    assert service.is_logged_in("vimeo") is True
    stored = token_repository.get_by_gateway_handle("vimeo").access_token
    assert stored["accessToken"] == "token-for-auth-code"


def test_logout_removes_token(gateway_context: GatewayContext, seed_token: Any) -> None:
    seed_token("vimeo")
    service = _service(gateway_context, _FakeYouTubeClient())

    service.logout("vimeo")

    assert service.is_logged_in("vimeo") is False
    assert [gateway.handle for gateway in service.list_gateways("logged_in")] == []


def test_authorization_url_carries_handle_as_state(gateway_context: GatewayContext) -> None:
    service = _service(gateway_context, _FakeYouTubeClient())

    assert service.get_authorization_url("youtube").endswith("state=youtube")


def test_fetch_by_id_delegates_to_gateway(
    gateway_context: GatewayContext,
    seed_token: Any,
) -> None:
    seed_token("youtube")
    service = _service(gateway_context, _FakeYouTubeClient())

    video = service.fetch_by_id("youtube", "abc")

    assert video.id == "abc"
    assert service.thumbnail_url(video) == "/thumbnails/youtube/abc/300"


def test_oauth_coordinator_is_shared(gateway_context: GatewayContext) -> None:
    service = _service(gateway_context, _FakeYouTubeClient())

    assert isinstance(service.oauth, OAuthCoordinator)
    assert service.oauth is gateway_context.oauth


def test_thumbnail_urls_are_signed() -> None:
    builder = ThumbnailUrlBuilder(base_url="https://cdn.example/thumbs/", signing_key="k3y")
    thumbnail = VideoThumbnail(
        gateway_handle="vimeo",
        video_id="76979871",
        smallest_source_url="https://i.vimeocdn.com/100.jpg",
        largest_source_url="https://i.vimeocdn.com/1280.jpg",
    )
    expected = hmac.new(b"k3y", b"vimeo/76979871/640", hashlib.sha256).hexdigest()

    url = builder.url_for(thumbnail, 640)

    assert url == f"https://cdn.example/thumbs/vimeo/76979871/640?s={expected}"
    assert builder.verify("vimeo", "76979871", 640, expected) is True
    assert builder.verify("vimeo", "76979871", 300, expected) is False


def test_thumbnail_url_requires_source() -> None:
    builder = ThumbnailUrlBuilder(base_url="/thumbnails", signing_key=None)

    assert builder.url_for(VideoThumbnail(gateway_handle="vimeo", video_id="1")) is None
