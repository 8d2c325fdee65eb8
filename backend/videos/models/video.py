from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, cast


@dataclass(frozen=True)
class VideoAuthor:
    name: str | None
    url: str | None


@dataclass(frozen=True)
class VideoSize:
    width: int | None
    height: int | None


@dataclass(frozen=True)
class VideoStatistic:
    play_count: int = 0


@dataclass(frozen=True)
class VideoThumbnail:
    gateway_handle: str
    video_id: str
    smallest_source_url: str | None = None
    largest_source_url: str | None = None


@dataclass(frozen=True)
class Video:
    id: str
    gateway_handle: str
    title: str
    description: str
    duration: timedelta
    published_at: datetime | None
    url: str
    private: bool
    author: VideoAuthor
    thumbnail: VideoThumbnail
    statistic: VideoStatistic
    size: VideoSize | None = None
    raw: dict[str, Any] = field(default_factory=lambda: cast(dict[str, Any], {}), compare=False)

    @property
    def duration_seconds(self) -> int:
        return int(self.duration.total_seconds())

    @property
    def duration_iso8601(self) -> str:
        return format_duration_iso8601(self.duration)

    @property
    def duration_readable(self) -> str:
        return format_duration_readable(self.duration)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "gateway_handle": self.gateway_handle,
            "title": self.title,
            "description": self.description,
            "duration_seconds": self.duration.total_seconds(),
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "url": self.url,
            "private": self.private,
            "author": {"name": self.author.name, "url": self.author.url},
            "thumbnail": {
                "smallest_source_url": self.thumbnail.smallest_source_url,
                "largest_source_url": self.thumbnail.largest_source_url,
            },
            "statistic": {"play_count": self.statistic.play_count},
            "size": (
                {"width": self.size.width, "height": self.size.height}
                if self.size is not None
                else None
            ),
            "raw": self.raw,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Video:
        video_id = str(payload["id"])
        gateway_handle = str(payload["gateway_handle"])
        author = _as_dict(payload.get("author"))
        thumbnail = _as_dict(payload.get("thumbnail"))
        statistic = _as_dict(payload.get("statistic"))
        size = payload.get("size")
        published_at = payload.get("published_at")

        return cls(
            id=video_id,
            gateway_handle=gateway_handle,
            title=str(payload.get("title") or ""),
            description=str(payload.get("description") or ""),
            duration=timedelta(seconds=float(payload.get("duration_seconds") or 0)),
            published_at=(
                datetime.fromisoformat(published_at) if isinstance(published_at, str) else None
            ),
            url=str(payload.get("url") or ""),
            private=bool(payload.get("private")),
            author=VideoAuthor(name=author.get("name"), url=author.get("url")),
            thumbnail=VideoThumbnail(
                gateway_handle=gateway_handle,
                video_id=video_id,
                smallest_source_url=thumbnail.get("smallest_source_url"),
                largest_source_url=thumbnail.get("largest_source_url"),
            ),
            statistic=VideoStatistic(play_count=int(statistic.get("play_count") or 0)),
            size=(
                VideoSize(width=size.get("width"), height=size.get("height"))
                if isinstance(size, dict)
                else None
            ),
            raw=_as_dict(payload.get("raw")),
        )


@dataclass(frozen=True)
class Pagination:
    more_token: str | None
    more: bool


@dataclass(frozen=True)
class VideoListing:
    videos: list[Video]
    pagination: Pagination

    @classmethod
    def empty(cls) -> VideoListing:
        return cls(videos=[], pagination=Pagination(more_token=None, more=False))


@dataclass(frozen=True)
class OauthAccount:
    id: str
    name: str | None

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> OauthAccount:
        name = payload.get("name")
        return cls(id=str(payload["id"]), name=name if isinstance(name, str) else None)


def format_duration_readable(duration: timedelta) -> str:
    total_seconds = max(0, int(duration.total_seconds()))
    hours, remainder = divmod(total_seconds, 3_600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_duration_iso8601(duration: timedelta) -> str:
    total_seconds = max(0, int(duration.total_seconds()))
    days, remainder = divmod(total_seconds, 86_400)
    hours, remainder = divmod(remainder, 3_600)
    minutes, seconds = divmod(remainder, 60)

    date_part = f"{days}D" if days else ""
    time_part = "".join(
        f"{value}{unit}" for value, unit in ((hours, "H"), (minutes, "M"), (seconds, "S")) if value
    )
    if not date_part and not time_part:
        return "PT0S"
    return f"P{date_part}" + (f"T{time_part}" if time_part else "")


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, Any], value)
        return {key: item for key, item in raw_dict.items() if isinstance(key, str)}
    return {}
