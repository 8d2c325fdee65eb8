from __future__ import annotations

import argparse
from collections.abc import Sequence
from urllib.parse import parse_qs, urlsplit

from backend.videos.dependencies import get_settings, get_video_service
from backend.videos.errors import VideosError
from backend.videos.logging_config import configure_application_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Connect a video gateway account from the terminal.",
    )
    parser.add_argument(
        "--gateway",
        type=str,
        required=True,
        help="Gateway handle, e.g. `youtube` or `vimeo`.",
    )
    parser.add_argument(
        "--code",
        type=str,
        default=None,
        help="Authorization code or the full redirect URL. Prompted for when omitted.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=3,
        help="How many uploads to list for verification.",
    )
    return parser.parse_args(argv)


def extract_authorization_code(raw: str) -> str:
    candidate = raw.strip()
    if not candidate:
        raise VideosError("Authorization code is empty.")
    if "://" not in candidate:
        return candidate

    codes = parse_qs(urlsplit(candidate).query).get("code")
    if not codes or not codes[0].strip():
        raise VideosError("Redirect URL has no `code` parameter.")
    return codes[0].strip()


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    configure_application_logging(get_settings())
    service = get_video_service()

    handle = args.gateway.strip().lower()
    print("Open this URL and approve access:")
    print(service.get_authorization_url(handle))

    raw_code = args.code if args.code is not None else input("Authorization code or redirect URL: ")
    service.login(handle, extract_authorization_code(raw_code))
    print(f"OAuth success for `{handle}`.")

    listing = service.list_videos(handle, "uploads", {"perPage": max(1, min(10, args.limit))})
    print("Recent uploads:")
    for index, video in enumerate(listing.videos, start=1):
        print(f"{index}. {video.title} [{video.id}] {video.duration_readable}")


if __name__ == "__main__":
    main()
