from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, cast

from backend.videos.config import OAuthProviderOptions
from backend.videos.errors import (
    ApiResponseError,
    CollectionParsingError,
    OauthAccountNotFoundError,
    VideoIdExtractError,
    VideoNotFoundError,
)
from backend.videos.models.explorer import ExplorerCollection
from backend.videos.models.token import AccessToken
from backend.videos.models.video import (
    OauthAccount,
    Video,
    VideoAuthor,
    VideoListing,
    VideoSize,
    VideoStatistic,
    VideoThumbnail,
)
from backend.videos.services.gateways.base import (
    Gateway,
    ListingHandler,
    SectionBuilder,
    build_listing,
)
from backend.videos.services.http_client import JsonApiClient
from backend.videos.services.oauth_clients import OAuthClient, StandardOAuthClient
from backend.videos.services.payloads import (
    as_dict,
    as_list,
    coerce_int,
    coerce_nonempty_string,
    parse_datetime,
)

LOGGER = logging.getLogger("video_gateways.gateways.vimeo")

VIMEO_API_URL = "https://api.vimeo.com/"
VIMEO_API_VERSION = "3.4"
VIMEO_AUTHORIZE_URL = "https://api.vimeo.com/oauth/authorize"
VIMEO_TOKEN_URL = "https://api.vimeo.com/oauth/access_token"
VIDEO_FIELDS = (
    "created_time,description,duration,height,link,name,pictures,privacy,stats,uri,user,width"
)
VIDEO_URL_PATTERN = re.compile(r"^https?://(?:www\.)?vimeo\.com/(?P<id>[0-9]+)")
PRIVATE_VIEW_SETTINGS: frozenset[str] = frozenset(
    {"nobody", "contacts", "password", "users", "disable"}
)


class VimeoGateway(Gateway):
    name = "Vimeo"
    oauth_scope = ("public", "private")
    embed_format = "https://player.vimeo.com/video/%s"

    def _build_auth_client(self, options: OAuthProviderOptions) -> OAuthClient:
        return StandardOAuthClient(
            authorize_url=VIMEO_AUTHORIZE_URL,
            token_url=VIMEO_TOKEN_URL,
            options=options,
            http_timeout_seconds=self._context.http_timeout_seconds,
        )

    def _build_api_client(self, token: AccessToken) -> JsonApiClient:
        return JsonApiClient(
            base_url=VIMEO_API_URL,
            access_token=token.access_token,
            headers={"Accept": f"application/vnd.vimeo.*+json;version={VIMEO_API_VERSION}"},
            http_timeout_seconds=self._context.http_timeout_seconds,
        )

    def extract_id_from_url(self, url: str) -> str:
        matched = VIDEO_URL_PATTERN.match(url.strip())
        if matched is None:
            raise VideoIdExtractError(f"`{url}` is not a Vimeo video URL.")
        return matched.group("id")

    def listing_methods(self) -> dict[str, ListingHandler]:
        return {
            "uploads": self._list_uploads,
            "favorites": self._list_favorites,
            "search": self._list_search,
            "album": self._list_album,
            "channel": self._list_channel,
            "folder": self._list_folder,
        }

    def explorer_sections(self) -> list[tuple[str, SectionBuilder]]:
        return [
            ("Library", self._library_collections),
            ("Playlists", lambda: self._collections("me/albums", "/albums/", method="album")),
            ("Channels", lambda: self._collections("me/channels", "/channels/", method="channel")),
            ("Folders", lambda: self._collections("me/projects", "/projects/", method="folder")),
        ]

    def parse_video(self, raw: Mapping[str, Any]) -> Video:
        data = dict(raw)
        uri = coerce_nonempty_string(data.get("uri"))
        if uri is None or not uri.startswith("/videos/"):
            raise VideoNotFoundError("Vimeo video payload has no `/videos/` uri.")
        video_id = uri[len("/videos/"):].split("/", 1)[0].split(":", 1)[0]

        user = as_dict(data.get("user"))
        stats = as_dict(data.get("stats"))
        privacy = as_dict(data.get("privacy"))
        smallest_url, largest_url = _select_thumbnail_sources(data.get("pictures"))

        return Video(
            id=video_id,
            gateway_handle=self.handle,
            title=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            duration=timedelta(seconds=coerce_int(data.get("duration")) or 0),
            published_at=parse_datetime(data.get("created_time")),
            url=f"https://vimeo.com/{video_id}",
            private=privacy.get("view") in PRIVATE_VIEW_SETTINGS,
            author=VideoAuthor(
                name=coerce_nonempty_string(user.get("name")),
                url=coerce_nonempty_string(user.get("link")),
            ),
            thumbnail=VideoThumbnail(
                gateway_handle=self.handle,
                video_id=video_id,
                smallest_source_url=smallest_url,
                largest_source_url=largest_url,
            ),
            statistic=VideoStatistic(play_count=coerce_int(stats.get("plays")) or 0),
            size=VideoSize(
                width=coerce_int(data.get("width")),
                height=coerce_int(data.get("height")),
            ),
            raw=data,
        )

    def _fetch_video(self, video_id: str) -> Video:
        payload = self._client().get(f"videos/{video_id}", {"fields": VIDEO_FIELDS})
        return self.parse_video(payload)

    def _fetch_account(self) -> OauthAccount:
        payload = self._client().get("me", {"fields": "uri,name"})
        uri = coerce_nonempty_string(payload.get("uri"))
        if uri is None:
            raise OauthAccountNotFoundError("Vimeo account payload has no uri.")
        return OauthAccount(
            id=uri.rstrip("/").rsplit("/", 1)[-1],
            name=coerce_nonempty_string(payload.get("name")),
        )

    def _client(self) -> JsonApiClient:
        return cast(JsonApiClient, self.api_client())

    # Listings.

    def _list_uploads(self, options: dict[str, Any]) -> VideoListing:
        return self._videos_request("me/videos", options)

    def _list_favorites(self, options: dict[str, Any]) -> VideoListing:
        return self._videos_request("me/likes", options)

    def _list_search(self, options: dict[str, Any]) -> VideoListing:
        return self._videos_request("videos", options)

    def _list_album(self, options: dict[str, Any]) -> VideoListing:
        album_id = _require_collection_id(options, "album")
        return self._videos_request(f"me/albums/{album_id}/videos", options)

    def _list_channel(self, options: dict[str, Any]) -> VideoListing:
        channel_id = _require_collection_id(options, "channel")
        return self._videos_request(f"channels/{channel_id}/videos", options)

    def _list_folder(self, options: dict[str, Any]) -> VideoListing:
        folder_id = _require_collection_id(options, "folder")
        return self._videos_request(f"me/projects/{folder_id}/videos", options)

    def _videos_request(self, path: str, options: dict[str, Any]) -> VideoListing:
        query = self._query_from_options(options)
        payload = self._client().get(path, query)
        videos = [self.parse_video(as_dict(item)) for item in as_list(payload.get("data"))]

        next_page = as_dict(payload.get("paging")).get("next")
        more_token = str(int(query["page"]) + 1) if next_page else None
        return build_listing(videos, more_token)

    def _query_from_options(self, options: Mapping[str, Any]) -> dict[str, Any]:
        # Extra filters such as `sort`, `direction` or `filter` go to Vimeo as is.
        query: dict[str, Any] = {
            key: value
            for key, value in options.items()
            if key not in _CONSUMED_OPTIONS and isinstance(value, str | int) and value != ""
        }
        query |= {
            "full_response": 1,
            "page": coerce_int(options.get("moreToken")) or 1,
            "per_page": self._per_page(options),
        }
        search_query = coerce_nonempty_string(options.get("q"))
        if search_query is not None:
            query["query"] = search_query
        return query

    # Explorer.

    def _library_collections(self) -> list[ExplorerCollection]:
        return [
            ExplorerCollection(name="Uploads", method="uploads", icon="video-camera"),
            ExplorerCollection(name="Favorites", method="favorites", icon="like"),
        ]

    def _collections(
        self,
        path: str,
        uri_marker: str,
        *,
        method: str,
    ) -> list[ExplorerCollection]:
        payload = self._client().get(path, {"page": 1, "per_page": 100})
        collections: list[ExplorerCollection] = []
        for item in as_list(payload.get("data")):
            item_dict = as_dict(item)
            uri = coerce_nonempty_string(item_dict.get("uri")) or ""
            name = coerce_nonempty_string(item_dict.get("name"))
            marker_index = uri.find(uri_marker)
            if marker_index < 0 or name is None:
                raise CollectionParsingError(f"Couldn't parse Vimeo {method} collection `{uri}`.")
            collection_id = uri[marker_index + len(uri_marker):]
            collections.append(
                ExplorerCollection(
                    name=name,
                    method=method,
                    options={"id": collection_id},
                    icon="list" if method == "album" else None,
                )
            )
        return collections


_CONSUMED_OPTIONS = frozenset({"moreToken", "q", "perPage", "id"})


def _require_collection_id(options: Mapping[str, Any], kind: str) -> str:
    raw = options.get("id")
    collection_id = str(raw).strip() if raw is not None else ""
    if not collection_id:
        raise ApiResponseError(f"Vimeo {kind} listing requires an `id` option.")
    return collection_id


def _select_thumbnail_sources(pictures: Any) -> tuple[str | None, str | None]:
    # API 3.4 nests sizes under `pictures.sizes`; older payloads list typed pictures.
    if isinstance(pictures, dict):
        candidates = as_list(as_dict(pictures).get("sizes"))
    else:
        candidates = [
            picture
            for picture in as_list(pictures)
            if as_dict(picture).get("type") == "thumbnail"
        ]

    sized: list[tuple[int, str]] = []
    for picture in candidates:
        picture_dict = as_dict(picture)
        link = coerce_nonempty_string(picture_dict.get("link"))
        if link is not None:
            sized.append((coerce_int(picture_dict.get("width")) or 0, link))
    if not sized:
        return None, None
    return (
        min(sized, key=lambda candidate: candidate[0])[1],
        max(sized, key=lambda candidate: candidate[0])[1],
    )

