from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from backend.videos.errors import VideoIdExtractError, VideoNotFoundError
from backend.videos.models.explorer import GatewayExplorer
from backend.videos.models.token import AccessToken
from backend.videos.models.video import OauthAccount, Video, VideoListing
from backend.videos.services.gateway_registry import GatewayFilter, GatewayRegistry
from backend.videos.services.gateways.base import Gateway
from backend.videos.services.oauth_coordinator import OAuthCoordinator
from backend.videos.services.thumbnails import ThumbnailUrlBuilder
from backend.videos.telemetry import TelemetryClient

LOGGER = logging.getLogger("video_gateways.service")


class VideoService:
    """Entry point used by the HTTP routes and scripts."""

    def __init__(
        self,
        *,
        registry: GatewayRegistry,
        oauth: OAuthCoordinator,
        thumbnails: ThumbnailUrlBuilder,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self.registry = registry
        self.oauth = oauth
        self.thumbnails = thumbnails
        self._telemetry = telemetry or TelemetryClient.disabled()

    def get_gateway_by_handle(
        self,
        handle: str,
        gateway_filter: GatewayFilter = "all",
    ) -> Gateway:
        return self.registry.get_by_handle(handle, gateway_filter)

    def list_gateways(self, gateway_filter: GatewayFilter = "all") -> list[Gateway]:
        return self.registry.list_gateways(gateway_filter)

    def list_videos(
        self,
        handle: str,
        method: str,
        options: Mapping[str, Any] | None = None,
    ) -> VideoListing:
        return self.get_gateway_by_handle(handle).list_videos(method, options)

    def fetch_by_id(self, handle: str, video_id: str) -> Video:
        return self.get_gateway_by_handle(handle).fetch_by_id(video_id)

    def get_video_by_url(self, url: str) -> Video:
        for gateway in self.registry.list_gateways():
            try:
                video_id = gateway.extract_id_from_url(url)
                video = gateway.fetch_by_id(video_id)
            except (VideoIdExtractError, VideoNotFoundError) as exc:
                LOGGER.debug(
                    "video by_url skipped gateway=%s error=%s",
                    gateway.handle,
                    type(exc).__name__,
                )
                continue
            self._telemetry.emit("video.by_url.resolved", gateway=gateway.handle)
            return video

        self._telemetry.emit("video.by_url.unresolved")
        raise VideoNotFoundError(f"No gateway could resolve `{url}`.")

    def get_authorization_url(self, handle: str, state: str | None = None) -> str:
        return self.get_gateway_by_handle(handle).get_authorization_url(state)

    def login(self, handle: str, authorization_code: str) -> AccessToken:
        gateway = self.get_gateway_by_handle(handle)
        token = self.oauth.login(gateway, authorization_code)
        gateway.forget_account()
        return token

    def logout(self, handle: str) -> None:
        gateway = self.get_gateway_by_handle(handle)
        self.oauth.logout(gateway)
        gateway.forget_account()

    def is_logged_in(self, handle: str) -> bool:
        return self.get_gateway_by_handle(handle).is_logged_in()

    def get_explorer(self, handle: str) -> GatewayExplorer:
        return self.get_gateway_by_handle(handle, "logged_in").get_explorer()

    def get_account(self, handle: str) -> OauthAccount:
        return self.get_gateway_by_handle(handle).get_account()

    def thumbnail_url(self, video: Video, size: int | None = None) -> str | None:
        if size is None:
            return self.thumbnails.url_for(video.thumbnail)
        return self.thumbnails.url_for(video.thumbnail, size)
