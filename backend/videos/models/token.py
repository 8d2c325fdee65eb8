from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AccessToken:
    access_token: str
    expires: int | None = None
    refresh_token: str | None = None
    resource_owner_id: str | None = None
    values: dict[str, Any] = field(default_factory=dict)

    def has_expired(self, now: float | None = None) -> bool:
        if self.expires is None:
            return False
        current = time.time() if now is None else now
        return self.expires <= current

    def with_refresh_token(self, refresh_token: str | None) -> AccessToken:
        if self.refresh_token or not refresh_token:
            return self
        return AccessToken(
            access_token=self.access_token,
            expires=self.expires,
            refresh_token=refresh_token,
            resource_owner_id=self.resource_owner_id,
            values=dict(self.values),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "accessToken": self.access_token,
            "expires": self.expires,
            "resourceOwnerId": self.resource_owner_id,
            "values": dict(self.values),
        }
        if self.refresh_token:
            payload["refreshToken"] = self.refresh_token
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AccessToken:
        access_token = payload.get("accessToken")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token payload has no accessToken")

        expires = payload.get("expires")
        refresh_token = payload.get("refreshToken")
        resource_owner_id = payload.get("resourceOwnerId")
        values = payload.get("values")
        if not isinstance(refresh_token, str) or not refresh_token:
            refresh_token = None
        return cls(
            access_token=access_token,
            expires=int(expires) if isinstance(expires, int | float) else None,
            refresh_token=refresh_token,
            resource_owner_id=str(resource_owner_id) if resource_owner_id is not None else None,
            values=dict(values) if isinstance(values, dict) else {},
        )


@dataclass(frozen=True)
class StoredToken:
    id: int
    gateway: str
    access_token: dict[str, Any]
    created_at: str
    updated_at: str
