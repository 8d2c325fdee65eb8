from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol

from backend.videos.repositories.common import utc_now
from backend.videos.repositories.database import Database

LOGGER = logging.getLogger("video_gateways.cache")


class CacheBackend(Protocol):
    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        ...

    def delete(self, key: str) -> None:
        ...


class CacheRepository:
    """SQLite key-value store with per-entry expiry.

    Database failures degrade to misses and failed writes.
    """

    def __init__(self, db: Database, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._db = db
        self._clock = clock

    def get(self, key: str) -> Any | None:
        try:
            with self._db.connection() as conn:
                row = conn.execute(
                    "SELECT value_json, expires_at FROM response_cache WHERE cache_key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            LOGGER.warning("cache read failed key=%s error=%s", key, exc)
            return None

        if row is None:
            return None
        if datetime.fromisoformat(str(row["expires_at"])) <= self._clock():
            return None
        try:
            return json.loads(str(row["value_json"]))
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        now = self._clock()
        try:
            encoded = json.dumps(value, ensure_ascii=True, sort_keys=True)
        except (TypeError, ValueError):
            return False

        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO response_cache (cache_key, value_json, expires_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(cache_key) DO UPDATE SET
                        value_json = excluded.value_json,
                        expires_at = excluded.expires_at,
                        updated_at = excluded.updated_at
                    """,
                    (
                        key,
                        encoded,
                        (now + timedelta(seconds=max(1, ttl_seconds))).isoformat(),
                        now.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            LOGGER.warning("cache write failed key=%s error=%s", key, exc)
            return False
        return True

    def delete(self, key: str) -> None:
        try:
            with self._db.connection() as conn:
                conn.execute("DELETE FROM response_cache WHERE cache_key = ?", (key,))
        except sqlite3.Error as exc:
            LOGGER.warning("cache delete failed key=%s error=%s", key, exc)

    def purge_expired(self) -> int:
        try:
            with self._db.connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM response_cache WHERE expires_at <= ?",
                    (self._clock().isoformat(),),
                )
                return cursor.rowcount
        except sqlite3.Error as exc:
            LOGGER.warning("cache purge failed error=%s", exc)
            return 0


class InMemoryCacheBackend:
    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[datetime, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        with self._lock:
            self._entries[key] = (self._clock() + timedelta(seconds=max(1, ttl_seconds)), value)
        return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
