from __future__ import annotations

import json
import sqlite3
from typing import Any, cast

from backend.videos.errors import (
    TokenDeleteError,
    TokenInvalidError,
    TokenNotFoundError,
    TokenSaveError,
)
from backend.videos.models.token import StoredToken
from backend.videos.repositories.common import utc_now_iso
from backend.videos.repositories.database import Database


class TokenRepository:
    """One persisted OAuth credential set per gateway handle."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_by_gateway_handle(self, gateway_handle: str) -> StoredToken:
        handle = _normalize_handle(gateway_handle)
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT id, gateway, access_token_json, created_at, updated_at
                FROM video_tokens
                WHERE gateway = ?
                """,
                (handle,),
            ).fetchone()

        if row is None:
            raise TokenNotFoundError(f"No token stored for gateway `{handle}`.")
        return _row_to_token(row)

    def save(self, gateway_handle: str, access_token: dict[str, Any]) -> StoredToken:
        handle = _normalize_handle(gateway_handle)
        now_iso = utc_now_iso()
        try:
            encoded = json.dumps(access_token, ensure_ascii=True, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise TokenSaveError(f"Token for gateway `{handle}` is not serializable.") from exc

        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO video_tokens (gateway, access_token_json, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(gateway) DO UPDATE SET
                        access_token_json = excluded.access_token_json,
                        updated_at = excluded.updated_at
                    """,
                    (handle, encoded, now_iso, now_iso),
                )
                row = conn.execute(
                    """
                    SELECT id, gateway, access_token_json, created_at, updated_at
                    FROM video_tokens
                    WHERE gateway = ?
                    """,
                    (handle,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise TokenSaveError(f"Failed to save token for gateway `{handle}`.") from exc

        if row is None:
            raise TokenSaveError(f"Token for gateway `{handle}` was not persisted.")
        return _row_to_token(row)

    def delete_by_gateway_handle(self, gateway_handle: str) -> bool:
        handle = _normalize_handle(gateway_handle)
        try:
            with self._db.connection() as conn:
                cursor = conn.execute("DELETE FROM video_tokens WHERE gateway = ?", (handle,))
                deleted = cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise TokenDeleteError(f"Failed to delete token for gateway `{handle}`.") from exc
        return deleted


def _normalize_handle(gateway_handle: str) -> str:
    handle = gateway_handle.strip().lower()
    if not handle:
        raise TokenInvalidError("Gateway handle must not be empty.")
    return handle


def _row_to_token(row: sqlite3.Row) -> StoredToken:
    gateway = str(row["gateway"])
    try:
        decoded = json.loads(str(row["access_token_json"]))
    except json.JSONDecodeError as exc:
        raise TokenInvalidError(f"Stored token for gateway `{gateway}` is not valid JSON.") from exc
    if not isinstance(decoded, dict):
        raise TokenInvalidError(f"Stored token for gateway `{gateway}` is not a JSON object.")

    return StoredToken(
        id=int(row["id"]),
        gateway=gateway,
        access_token=cast(dict[str, Any], decoded),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )
