from __future__ import annotations

import hashlib
import logging
import sqlite3
from typing import Any

from backend.videos.repositories.cache_repository import CacheBackend

LOGGER = logging.getLogger("video_gateways.cache")

VIDEO_ENTITY_PREFIX = "video"
ACCOUNT_ENTITY_PREFIX = "oauth_account"


class ResponseCache:
    def __init__(
        self,
        backend: CacheBackend,
        *,
        enabled: bool,
        ttl_seconds: int,
        key_prefix: str = "videos",
    ) -> None:
        self._backend = backend
        self._enabled = enabled
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix

    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def get(self, key: str) -> Any | None:
        try:
            value = self._backend.get(key)
        except sqlite3.Error as exc:
            LOGGER.warning("cache backend read failed key=%s error=%s", key, exc)
            return None
        LOGGER.debug("cache lookup key=%s hit=%s", key, value is not None)
        return value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            return self._backend.set(key, value, ttl)
        except sqlite3.Error as exc:
            LOGGER.warning("cache backend write failed key=%s error=%s", key, exc)
            return False

    def delete(self, key: str) -> None:
        try:
            self._backend.delete(key)
        except sqlite3.Error as exc:
            LOGGER.warning("cache backend delete failed key=%s error=%s", key, exc)

    def video_cache_key(self, gateway_handle: str, video_id: str) -> str:
        digest = hashlib.md5(video_id.encode("utf-8"), usedforsecurity=False).hexdigest()
        return f"{self._key_prefix}.{VIDEO_ENTITY_PREFIX}.{gateway_handle}.{digest}"

    def account_cache_key(self, gateway_handle: str) -> str:
        return f"{self._key_prefix}.{ACCOUNT_ENTITY_PREFIX}.{gateway_handle}"
