from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from backend.videos.errors import VideosError
from backend.videos.models.explorer import ExplorerCollection, ExplorerSection, GatewayExplorer
from backend.videos.models.token import AccessToken
from backend.videos.models.video import (
    OauthAccount,
    Video,
    VideoAuthor,
    VideoListing,
    VideoSize,
    VideoStatistic,
    VideoThumbnail,
    format_duration_iso8601,
    format_duration_readable,
)
from backend.videos.scripts.oauth_login import extract_authorization_code


@pytest.mark.parametrize(
    ("duration", "readable", "iso8601"),
    [
        (timedelta(0), "00:00", "PT0S"),
        (timedelta(seconds=59), "00:59", "PT59S"),
        (timedelta(minutes=12, seconds=34), "12:34", "PT12M34S"),
        (timedelta(hours=1, minutes=2, seconds=3), "01:02:03", "PT1H2M3S"),
        (timedelta(days=1), "24:00:00", "P1D"),
        (timedelta(days=1, minutes=5), "24:05:00", "P1DT5M"),
    ],
)
def test_duration_formats(duration: timedelta, readable: str, iso8601: str) -> None:
    assert format_duration_readable(duration) == readable
    assert format_duration_iso8601(duration) == iso8601


def test_video_payload_restores_equal_video() -> None:
    video = Video(
        id="76979871",
        gateway_handle="vimeo",
        title="Clip",
        description="",
        duration=timedelta(seconds=754),
        published_at=datetime(2013, 10, 30, 15, 30, 42, tzinfo=UTC),
        url="https://vimeo.com/76979871",
        private=False,
        author=VideoAuthor(name="Jane Doe", url=None),
        thumbnail=VideoThumbnail(
            gateway_handle="vimeo",
            video_id="76979871",
            largest_source_url="https://i.vimeocdn.com/1280.jpg",
        ),
        statistic=VideoStatistic(play_count=3),
        size=VideoSize(width=1920, height=1080),
        raw={"uri": "/videos/76979871"},
    )

    restored = Video.from_payload(video.to_payload())

    assert restored == video
    assert restored.raw == {"uri": "/videos/76979871"}
    assert restored.duration_seconds == 754


def test_video_payload_keeps_fractional_duration() -> None:
    video = Video(
        id="abc",
        gateway_handle="youtube",
        title="Short",
        description="",
        duration=timedelta(seconds=1.5),
        published_at=datetime(2024, 5, 1, 10, 0, tzinfo=UTC),
        url="http://youtu.be/abc",
        private=False,
        author=VideoAuthor(name=None, url=None),
        thumbnail=VideoThumbnail(gateway_handle="youtube", video_id="abc"),
        statistic=VideoStatistic(),
    )

    restored = Video.from_payload(video.to_payload())

    assert restored.duration == timedelta(seconds=1.5)
    assert restored.duration_seconds == 1


def test_empty_listing() -> None:
    listing = VideoListing.empty()

    assert listing.videos == []
    assert listing.pagination.more is False
    assert listing.pagination.more_token is None


def test_access_token_expiry_and_payload() -> None:
    token = AccessToken(access_token="abc", expires=1_000, resource_owner_id="42")

    assert token.has_expired(now=999) is False
    assert token.has_expired(now=1_000) is True
    assert AccessToken(access_token="abc").has_expired(now=10**12) is False
    assert "refreshToken" not in token.to_payload()
    assert token.with_refresh_token("r-1").refresh_token == "r-1"
    assert token.with_refresh_token(None) is token

    restored = AccessToken.from_payload(token.with_refresh_token("r-1").to_payload())
    assert restored.refresh_token == "r-1"
    assert restored.resource_owner_id == "42"

    with pytest.raises(ValueError):
        AccessToken.from_payload({"expires": 10})


def test_account_payload() -> None:
    account = OauthAccount(id="UC123", name=None)

    assert OauthAccount.from_payload(account.to_payload()) == account


def test_explorer_collection_methods() -> None:
    explorer = GatewayExplorer(
        sections=[
            ExplorerSection(
                name="Library",
                collections=[
                    ExplorerCollection(name="Uploads", method="uploads"),
                    ExplorerCollection(name="Favorites", method="favorites"),
                ],
            ),
            ExplorerSection(
                name="Playlists",
                collections=[ExplorerCollection(name="Trips", method="album", options={"id": "1"})],
            ),
        ]
    )

    assert explorer.collection_methods() == {"uploads", "favorites", "album"}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  4/0AbCdEf  ", "4/0AbCdEf"),
        ("http://localhost:8000/oauth/callback?code=abc123&state=vimeo", "abc123"),
    ],
)
def test_extract_authorization_code(raw: str, expected: str) -> None:
    assert extract_authorization_code(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "http://localhost:8000/oauth/callback?state=vimeo&error=access_denied"],
)
def test_extract_authorization_code_rejects_missing_codes(raw: str) -> None:
    with pytest.raises(VideosError):
        extract_authorization_code(raw)
