from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import timedelta
from importlib import import_module
from typing import Any
from urllib.parse import parse_qs, urlsplit

from backend.videos.config import OAuthProviderOptions
from backend.videos.errors import (
    ApiClientCreateError,
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
    VideoStatistic,
    VideoThumbnail,
)
from backend.videos.services.gateways.base import (
    Gateway,
    ListingHandler,
    SectionBuilder,
    build_listing,
)
from backend.videos.services.oauth_clients import GoogleOAuthClient, OAuthClient
from backend.videos.services.payloads import (
    as_dict,
    as_list,
    coerce_int,
    coerce_nonempty_string,
    parse_datetime,
)

LOGGER = logging.getLogger("video_gateways.gateways.youtube")

YOUTUBE_API_URL = "https://www.googleapis.com/youtube/v3/"
VIDEO_PARTS = "snippet,statistics,contentDetails"
UPLOAD_VIDEO_PARTS = "snippet,statistics,contentDetails,status"
# Captures the id after `watch?v=` or the last path segment.
VIDEO_URL_PATTERN = re.compile(
    r"^https?://(?:www\.youtube\.com|youtube\.com|youtu\.be).*/(?:watch\?v=)?(?P<id>.*)$"
)
VIDEO_ID_TERMINATORS = re.compile(r"[?&#]")
ISO8601_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


class YouTubeGateway(Gateway):
    name = "YouTube"
    oauth_scope = (
        "https://www.googleapis.com/auth/userinfo.profile",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/youtube",
        "https://www.googleapis.com/auth/youtube.readonly",
    )
    oauth_authorization_options = {"access_type": "offline", "prompt": "consent"}
    embed_format = "https://www.youtube.com/embed/%s?wmode=transparent"

    def _build_auth_client(self, options: OAuthProviderOptions) -> OAuthClient:
        return GoogleOAuthClient(options=options, scope=self.oauth_scope)

    def _build_api_client(self, token: AccessToken) -> Any:
        try:
            credentials_module = import_module("google.oauth2.credentials")
            discovery_module = import_module("googleapiclient.discovery")
        except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
            raise ApiClientCreateError(
                "YouTube requires google-api-python-client and google-auth dependencies"
            ) from exc

        credentials_cls: Any = credentials_module.Credentials
        build_fn: Any = discovery_module.build
        return build_fn(
            "youtube",
            "v3",
            credentials=credentials_cls(token=token.access_token),
            cache_discovery=False,
        )

    def extract_id_from_url(self, url: str) -> str:
        matched = VIDEO_URL_PATTERN.match(url.strip())
        if matched is None:
            raise VideoIdExtractError(f"`{url}` is not a YouTube video URL.")

        parsed = urlsplit(url.strip())
        if parsed.path.rstrip("/") == "/watch":
            video_id = next(iter(parse_qs(parsed.query).get("v", [])), "")
        else:
            # Share links carry tracking suffixes such as `?si=`, `&feature=` or `#t=`.
            video_id = VIDEO_ID_TERMINATORS.split(matched.group("id"), maxsplit=1)[0]
        if not video_id:
            raise VideoIdExtractError(f"`{url}` does not contain a YouTube video id.")
        return video_id

    def listing_methods(self) -> dict[str, ListingHandler]:
        return {
            "uploads": self._list_uploads,
            "likes": self._list_likes,
            "playlist": self._list_playlist,
            "search": self._list_search,
        }

    def explorer_sections(self) -> list[tuple[str, SectionBuilder]]:
        return [
            ("Library", self._library_collections),
            ("Playlists", self._playlist_collections),
        ]

    def parse_video(self, raw: Mapping[str, Any]) -> Video:
        data = dict(raw)
        video_id = coerce_nonempty_string(data.get("id"))
        if video_id is None:
            raise VideoNotFoundError("YouTube video payload has no id.")

        snippet = as_dict(data.get("snippet"))
        statistics = as_dict(data.get("statistics"))
        content_details = as_dict(data.get("contentDetails"))
        status = as_dict(data.get("status"))
        smallest_url, largest_url = _select_thumbnail_sources(as_dict(snippet.get("thumbnails")))
        channel_id = coerce_nonempty_string(snippet.get("channelId"))

        return Video(
            id=video_id,
            gateway_handle=self.handle,
            title=str(snippet.get("title") or ""),
            description=str(snippet.get("description") or ""),
            duration=parse_iso8601_duration(content_details.get("duration")),
            published_at=parse_datetime(snippet.get("publishedAt")),
            url=f"http://youtu.be/{video_id}",
            private=status.get("privacyStatus") == "private",
            author=VideoAuthor(
                name=coerce_nonempty_string(snippet.get("channelTitle")),
                url=f"http://youtube.com/channel/{channel_id}" if channel_id else None,
            ),
            thumbnail=VideoThumbnail(
                gateway_handle=self.handle,
                video_id=video_id,
                smallest_source_url=smallest_url,
                largest_source_url=largest_url,
            ),
            statistic=VideoStatistic(play_count=coerce_int(statistics.get("viewCount")) or 0),
            raw=data,
        )

    def _fetch_video(self, video_id: str) -> Video:
        response = self._execute(
            self.api_client().videos().list(part=VIDEO_PARTS, id=video_id)
        )
        items = as_list(response.get("items"))
        if len(items) != 1:
            raise VideoNotFoundError(
                f"YouTube returned {len(items)} items for video `{video_id}`."
            )
        return self.parse_video(as_dict(items[0]))

    def _fetch_account(self) -> OauthAccount:
        response = self._execute(
            self.api_client().channels().list(part="snippet", mine=True, maxResults=1)
        )
        items = as_list(response.get("items"))
        if not items:
            raise OauthAccountNotFoundError("YouTube account has no channel.")
        channel = as_dict(items[0])
        channel_id = coerce_nonempty_string(channel.get("id"))
        if channel_id is None:
            raise OauthAccountNotFoundError("YouTube channel payload has no id.")
        snippet = as_dict(channel.get("snippet"))
        return OauthAccount(id=channel_id, name=coerce_nonempty_string(snippet.get("title")))

    # Listings.

    def _list_likes(self, options: dict[str, Any]) -> VideoListing:
        response = self._execute(
            self.api_client()
            .videos()
            .list(part=VIDEO_PARTS, myRating="like", **self._pagination_query(options))
        )
        videos = self._parse_videos(response)
        return build_listing(videos, coerce_nonempty_string(response.get("nextPageToken")))

    def _list_playlist(self, options: dict[str, Any]) -> VideoListing:
        playlist_id = coerce_nonempty_string(options.get("id"))
        if playlist_id is None:
            raise ApiResponseError("YouTube playlist listing requires an `id` option.")
        return self._list_playlist_items(playlist_id, options, video_parts=VIDEO_PARTS)

    def _list_uploads(self, options: dict[str, Any]) -> VideoListing:
        uploads_playlist_id = self._special_playlist_id("uploads")
        if uploads_playlist_id is None:
            return VideoListing.empty()
        return self._list_playlist_items(
            uploads_playlist_id,
            options,
            video_parts=UPLOAD_VIDEO_PARTS,
        )

    def _list_search(self, options: dict[str, Any]) -> VideoListing:
        query = str(options.get("q") or "").strip()
        response = self._execute(
            self.api_client()
            .search()
            .list(part="id", type="video", q=query, **self._pagination_query(options))
        )
        video_ids: list[str] = []
        for item in as_list(response.get("items")):
            video_id = coerce_nonempty_string(as_dict(as_dict(item).get("id")).get("videoId"))
            if video_id is not None:
                video_ids.append(video_id)
        if not video_ids:
            return VideoListing.empty()

        videos = self._videos_by_ids(video_ids, parts=VIDEO_PARTS)
        return build_listing(videos, coerce_nonempty_string(response.get("nextPageToken")))

    def _list_playlist_items(
        self,
        playlist_id: str,
        options: dict[str, Any],
        *,
        video_parts: str,
    ) -> VideoListing:
        response = self._execute(
            self.api_client()
            .playlistItems()
            .list(part="id,snippet", playlistId=playlist_id, **self._pagination_query(options))
        )
        video_ids: list[str] = []
        for item in as_list(response.get("items")):
            resource = as_dict(as_dict(as_dict(item).get("snippet")).get("resourceId"))
            video_id = coerce_nonempty_string(resource.get("videoId"))
            if video_id is not None:
                video_ids.append(video_id)
        if not video_ids:
            return VideoListing.empty()

        videos = self._videos_by_ids(video_ids, parts=video_parts)
        return build_listing(videos, coerce_nonempty_string(response.get("nextPageToken")))

    def _videos_by_ids(self, video_ids: list[str], *, parts: str) -> list[Video]:
        response = self._execute(
            self.api_client().videos().list(part=parts, id=",".join(video_ids))
        )
        return self._parse_videos(response)

    def _parse_videos(self, response: dict[str, Any]) -> list[Video]:
        return [self.parse_video(as_dict(item)) for item in as_list(response.get("items"))]

    def _pagination_query(self, options: Mapping[str, Any]) -> dict[str, Any]:
        query: dict[str, Any] = {"maxResults": self._per_page(options)}
        more_token = coerce_nonempty_string(options.get("moreToken"))
        if more_token is not None:
            query["pageToken"] = more_token
        return query

    def _special_playlist_id(self, playlist_type: str) -> str | None:
        response = self._execute(
            self.api_client().channels().list(part="contentDetails", mine=True)
        )
        items = as_list(response.get("items"))
        if not items:
            return None
        content_details = as_dict(as_dict(items[0]).get("contentDetails"))
        related = as_dict(content_details.get("relatedPlaylists"))
        return coerce_nonempty_string(related.get(playlist_type))

    # Explorer.

    def _library_collections(self) -> list[ExplorerCollection]:
        return [
            ExplorerCollection(name="Uploads", method="uploads", icon="video-camera"),
            ExplorerCollection(name="Liked videos", method="likes", icon="thumb-up"),
        ]

    def _playlist_collections(self) -> list[ExplorerCollection]:
        response = self._execute(
            self.api_client().playlists().list(part="snippet", mine=True, maxResults=50)
        )
        collections: list[ExplorerCollection] = []
        for item in as_list(response.get("items")):
            item_dict = as_dict(item)
            playlist_id = coerce_nonempty_string(item_dict.get("id"))
            title = coerce_nonempty_string(as_dict(item_dict.get("snippet")).get("title"))
            if playlist_id is None or title is None:
                raise CollectionParsingError("YouTube playlist payload is missing id or title.")
            collections.append(
                ExplorerCollection(
                    name=title,
                    method="playlist",
                    options={"id": playlist_id},
                    icon="list",
                )
            )
        return collections

    def _execute(self, request: Any) -> dict[str, Any]:
        try:
            response = request.execute()
        except Exception as exc:
            resp = getattr(exc, "resp", None)
            status = getattr(resp, "status", None)
            LOGGER.warning(
                "youtube api request_failed status=%s error=%s",
                status,
                type(exc).__name__,
            )
            raise ApiResponseError(
                f"YouTube API request failed: {exc}",
                status_code=status if isinstance(status, int) else None,
            ) from exc

        payload = as_dict(response)
        error = payload.get("error")
        if error:
            error_dict = as_dict(error)
            message = coerce_nonempty_string(error_dict.get("message")) or str(error)
            raise ApiResponseError(
                f"YouTube API returned an error: {message}",
                status_code=coerce_int(error_dict.get("code")),
            )
        return payload


def parse_iso8601_duration(raw_value: object) -> timedelta:
    if not isinstance(raw_value, str):
        return timedelta(0)
    matched = ISO8601_DURATION_PATTERN.match(raw_value.strip())
    if matched is None:
        return timedelta(0)
    return timedelta(
        days=int(matched.group("days") or 0),
        hours=int(matched.group("hours") or 0),
        minutes=int(matched.group("minutes") or 0),
        seconds=float(matched.group("seconds") or 0),
    )


def _select_thumbnail_sources(thumbnails: dict[str, Any]) -> tuple[str | None, str | None]:
    candidates: list[tuple[int, str]] = []
    for payload in thumbnails.values():
        payload_dict = as_dict(payload)
        url = coerce_nonempty_string(payload_dict.get("url"))
        if url is not None:
            candidates.append((coerce_int(payload_dict.get("width")) or 0, url))
    if not candidates:
        return None, None

    smallest = min(candidates, key=lambda candidate: candidate[0])[1]
    maxres = coerce_nonempty_string(as_dict(thumbnails.get("maxres")).get("url"))
    largest = maxres or max(candidates, key=lambda candidate: candidate[0])[1]
    return smallest, largest

