from __future__ import annotations

import hashlib
import hmac
from urllib.parse import quote, urlencode

from backend.videos.models.video import VideoThumbnail

DEFAULT_THUMBNAIL_SIZE = 300


class ThumbnailUrlBuilder:
    """Signed URLs for the external thumbnail resize service."""

    def __init__(self, *, base_url: str, signing_key: str | None) -> None:
        self._base_url = base_url.rstrip("/")
        self._signing_key = signing_key

    def url_for(self, thumbnail: VideoThumbnail, size: int = DEFAULT_THUMBNAIL_SIZE) -> str | None:
        if thumbnail.largest_source_url is None:
            return None

        path = "/".join(
            quote(part, safe="")
            for part in (thumbnail.gateway_handle, thumbnail.video_id, str(size))
        )
        url = f"{self._base_url}/{path}"
        signature = self.signature(thumbnail.gateway_handle, thumbnail.video_id, size)
        if signature is None:
            return url
        return f"{url}?{urlencode({'s': signature})}"

    def signature(self, gateway_handle: str, video_id: str, size: int) -> str | None:
        if self._signing_key is None:
            return None
        message = f"{gateway_handle}/{video_id}/{size}".encode()
        return hmac.new(self._signing_key.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def verify(self, gateway_handle: str, video_id: str, size: int, signature: str) -> bool:
        expected = self.signature(gateway_handle, video_id, size)
        if expected is None:
            return True
        return hmac.compare_digest(expected, signature)
