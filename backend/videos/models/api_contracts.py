from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from backend.videos.models.explorer import GatewayExplorer
from backend.videos.models.video import OauthAccount, Video, VideoListing


def _default_explorer_sections() -> list[ExplorerSectionResponse]:
    return []


class GatewaySummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    handle: str
    name: str
    logged_in: bool
    supports_search: bool
    listing_methods: list[str]


class VideoAuthorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    url: str | None = None


class VideoResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    gateway_handle: str
    title: str
    description: str
    url: str
    embed_url: str
    private: bool
    published_at: str | None = None
    duration_seconds: int
    duration_readable: str
    duration_iso8601: str
    play_count: int
    width: int | None = None
    height: int | None = None
    author: VideoAuthorResponse
    thumbnail_url: str | None = None

    @classmethod
    def from_video(
        cls,
        video: Video,
        *,
        embed_url: str,
        thumbnail_url: str | None,
    ) -> VideoResponse:
        return cls(
            id=video.id,
            gateway_handle=video.gateway_handle,
            title=video.title,
            description=video.description,
            url=video.url,
            embed_url=embed_url,
            private=video.private,
            published_at=video.published_at.isoformat() if video.published_at else None,
            duration_seconds=video.duration_seconds,
            duration_readable=video.duration_readable,
            duration_iso8601=video.duration_iso8601,
            play_count=video.statistic.play_count,
            width=video.size.width if video.size else None,
            height=video.size.height if video.size else None,
            author=VideoAuthorResponse(name=video.author.name, url=video.author.url),
            thumbnail_url=thumbnail_url,
        )


class PaginationResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    more_token: str | None = Field(default=None, alias="moreToken")
    more: bool


class VideoListingResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    videos: list[VideoResponse]
    pagination: PaginationResponse


class ExplorerCollectionResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    method: str
    options: dict[str, Any]
    icon: str | None = None


class ExplorerSectionResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    collections: list[ExplorerCollectionResponse]


class ExplorerResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gateway_handle: str
    sections: list[ExplorerSectionResponse] = Field(default_factory=_default_explorer_sections)

    @classmethod
    def from_explorer(cls, gateway_handle: str, explorer: GatewayExplorer) -> ExplorerResponse:
        return cls(
            gateway_handle=gateway_handle,
            sections=[
                ExplorerSectionResponse(
                    name=section.name,
                    collections=[
                        ExplorerCollectionResponse(
                            name=collection.name,
                            method=collection.method,
                            options=dict(collection.options),
                            icon=collection.icon,
                        )
                        for collection in section.collections
                    ],
                )
                for section in explorer.sections
            ],
        )


class AccountResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gateway_handle: str
    id: str
    name: str | None = None

    @classmethod
    def from_account(cls, gateway_handle: str, account: OauthAccount) -> AccountResponse:
        return cls(gateway_handle=gateway_handle, id=account.id, name=account.name)


class OauthStatusResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gateway_handle: str
    logged_in: bool


def listing_response(
    listing: VideoListing,
    videos: list[VideoResponse],
) -> VideoListingResponse:
    return VideoListingResponse(
        videos=videos,
        pagination=PaginationResponse(
            more_token=listing.pagination.more_token,
            more=listing.pagination.more,
        ),
    )
