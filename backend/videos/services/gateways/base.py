from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from backend.videos.config import OAuthProviderOptions
from backend.videos.errors import (
    ApiClientCreateError,
    GatewayMethodNotFoundError,
    OauthAccessTokenNotFoundError,
    OauthAccountNotFoundError,
    VideoNotFoundError,
)
from backend.videos.models.explorer import ExplorerCollection, ExplorerSection, GatewayExplorer
from backend.videos.models.token import AccessToken
from backend.videos.models.video import OauthAccount, Pagination, Video, VideoListing
from backend.videos.services.oauth_clients import OAuthClient
from backend.videos.services.oauth_coordinator import OAuthCoordinator
from backend.videos.services.response_cache import ResponseCache
from backend.videos.telemetry import TelemetryClient

LOGGER = logging.getLogger("video_gateways.gateways")

AuthClientFactory = Callable[[OAuthProviderOptions], OAuthClient]
ApiClientFactory = Callable[[AccessToken], Any]
ListingHandler = Callable[[dict[str, Any]], VideoListing]
SectionBuilder = Callable[[], list[ExplorerCollection]]


def _default_oauth_options(_handle: str) -> OAuthProviderOptions:
    return OAuthProviderOptions(client_id=None, client_secret=None, redirect_uri="")


@dataclass(frozen=True)
class GatewayContext:
    oauth: OAuthCoordinator
    cache: ResponseCache
    oauth_options: Callable[[str], OAuthProviderOptions] = _default_oauth_options
    videos_per_page: int = 30
    http_timeout_seconds: float = 30.0
    telemetry: TelemetryClient = field(default_factory=TelemetryClient.disabled)


def handle_for_type(gateway_type: type[Gateway]) -> str:
    return gateway_type.__name__.removesuffix("Gateway").lower()


class Gateway(ABC):
    name: ClassVar[str]
    oauth_scope: ClassVar[tuple[str, ...]] = ()
    oauth_authorization_options: ClassVar[Mapping[str, str]] = {}
    embed_format: ClassVar[str]

    def __init__(
        self,
        context: GatewayContext,
        *,
        auth_client_factory: AuthClientFactory | None = None,
        api_client_factory: ApiClientFactory | None = None,
    ) -> None:
        self._context = context
        self._auth_client_factory = auth_client_factory
        self._api_client_factory = api_client_factory
        self._auth_client: OAuthClient | None = None
        self._api_client: Any | None = None
        self._api_client_token: str | None = None

    @property
    def handle(self) -> str:
        return handle_for_type(type(self))

    @property
    def telemetry(self) -> TelemetryClient:
        return self._context.telemetry.bind(gateway=self.handle)

    # OAuth.

    def oauth_provider_options(self) -> OAuthProviderOptions:
        return self._context.oauth_options(self.handle)

    def create_auth_client(self, options: OAuthProviderOptions) -> OAuthClient:
        if self._auth_client_factory is not None:
            return self._auth_client_factory(options)
        return self._build_auth_client(options)

    def auth_client(self) -> OAuthClient:
        if self._auth_client is None:
            self._auth_client = self.create_auth_client(self.oauth_provider_options())
        return self._auth_client

    def get_authorization_url(self, state: str | None = None) -> str:
        return self.auth_client().authorization_url(
            self.oauth_scope,
            extra_params=self.oauth_authorization_options,
            state=state or self.handle,
        )

    # API client.

    def api_client(self) -> Any:
        try:
            token = self._context.oauth.get_access_token(self)
        except OauthAccessTokenNotFoundError as exc:
            raise ApiClientCreateError(
                f"Couldn't create the `{self.handle}` API client: {exc}"
            ) from exc

        if self._api_client is not None and self._api_client_token == token.access_token:
            return self._api_client

        try:
            if self._api_client_factory is not None:
                client = self._api_client_factory(token)
            else:
                client = self._build_api_client(token)
        except Exception as exc:
            raise ApiClientCreateError(
                f"Couldn't create the `{self.handle}` API client: {exc}"
            ) from exc

        self._api_client = client
        self._api_client_token = token.access_token
        return client

    # Videos.

    def fetch_by_id(self, video_id: str) -> Video:
        cache = self._context.cache
        cache_key = cache.video_cache_key(self.handle, video_id)
        if cache.is_enabled():
            cached = self._video_from_cache(cache.get(cache_key))
            if cached is not None:
                self.telemetry.emit("gateway.video.fetch", cache_hit=True)
                return cached

        try:
            video = self._fetch_video(video_id)
        except VideoNotFoundError:
            raise
        except Exception as exc:
            LOGGER.info(
                "gateway fetch_by_id failed gateway=%s video_id=%s error=%s",
                self.handle,
                video_id,
                type(exc).__name__,
            )
            raise VideoNotFoundError(
                f"Video `{video_id}` not found on `{self.handle}`: {exc}"
            ) from exc

        if cache.is_enabled():
            cache.set(cache_key, video.to_payload())
        self.telemetry.emit("gateway.video.fetch", cache_hit=False)
        return video

    def list_videos(self, method: str, options: Mapping[str, Any] | None = None) -> VideoListing:
        handler = self.listing_methods().get(method.strip().lower())
        if handler is None:
            raise GatewayMethodNotFoundError(
                f"Gateway `{self.handle}` has no listing method `{method}`."
            )

        listing = handler(dict(options or {}))
        self.telemetry.emit(
            "gateway.videos.list",
            method=method,
            count=len(listing.videos),
            more=listing.pagination.more,
        )
        return listing

    def get_explorer(self) -> GatewayExplorer:
        sections: list[ExplorerSection] = []
        for section_name, build_section in self.explorer_sections():
            try:
                collections = build_section()
            except Exception:
                LOGGER.warning(
                    "gateway explorer section_failed gateway=%s section=%s",
                    self.handle,
                    section_name,
                    exc_info=True,
                )
                continue
            if collections:
                sections.append(ExplorerSection(name=section_name, collections=collections))
        return GatewayExplorer(sections=sections)

    def get_account(self) -> OauthAccount:
        cache = self._context.cache
        cache_key = cache.account_cache_key(self.handle)
        if cache.is_enabled():
            cached = cache.get(cache_key)
            if isinstance(cached, dict):
                try:
                    return OauthAccount.from_payload(cached)
                except (KeyError, TypeError, ValueError):
                    LOGGER.debug("gateway cached account unreadable gateway=%s", self.handle)

        try:
            account = self._fetch_account()
        except Exception as exc:
            raise OauthAccountNotFoundError(
                f"Couldn't load the `{self.handle}` account: {exc}"
            ) from exc

        if cache.is_enabled():
            cache.set(cache_key, account.to_payload())
        return account

    def forget_account(self) -> None:
        self._context.cache.delete(self._context.cache.account_cache_key(self.handle))

    def embed_url(self, video_id: str, options: Mapping[str, Any] | None = None) -> str:
        parts = urlsplit(self.embed_format % video_id)
        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        for key, value in (options or {}).items():
            query[key] = _embed_option_value(value)
        return urlunsplit(parts._replace(query=urlencode(query)))

    def supports_search(self) -> bool:
        return "search" in self.listing_methods()

    def videos_per_page(self) -> int:
        return self._context.videos_per_page

    def is_logged_in(self) -> bool:
        return self._context.oauth.is_logged_in(self)

    # Provider hooks.

    @abstractmethod
    def _build_auth_client(self, options: OAuthProviderOptions) -> OAuthClient:
        ...

    @abstractmethod
    def _build_api_client(self, token: AccessToken) -> Any:
        ...

    @abstractmethod
    def _fetch_video(self, video_id: str) -> Video:
        ...

    @abstractmethod
    def _fetch_account(self) -> OauthAccount:
        ...

    @abstractmethod
    def extract_id_from_url(self, url: str) -> str:
        ...

    @abstractmethod
    def listing_methods(self) -> dict[str, ListingHandler]:
        ...

    @abstractmethod
    def explorer_sections(self) -> list[tuple[str, SectionBuilder]]:
        ...

    @abstractmethod
    def parse_video(self, raw: Mapping[str, Any]) -> Video:
        ...

    # Helpers shared by providers.

    def _per_page(self, options: Mapping[str, Any]) -> int:
        raw = options.get("perPage", options.get("per_page"))
        if isinstance(raw, int) and not isinstance(raw, bool) and raw > 0:
            return raw
        if isinstance(raw, str) and raw.strip().isdigit() and int(raw) > 0:
            return int(raw)
        return self.videos_per_page()

    def _video_from_cache(self, cached: Any) -> Video | None:
        if not isinstance(cached, dict):
            return None
        try:
            return Video.from_payload(cached)
        except (KeyError, TypeError, ValueError):
            LOGGER.debug("gateway cached video unreadable gateway=%s", self.handle)
            return None


def build_listing(videos: list[Video], next_token: str | None) -> VideoListing:
    more = bool(next_token) and bool(videos)
    return VideoListing(
        videos=videos,
        pagination=Pagination(more_token=next_token if more else None, more=more),
    )


def _embed_option_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)
