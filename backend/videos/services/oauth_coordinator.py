from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from backend.videos.errors import (
    OauthAccessTokenNotFoundError,
    OauthDeleteAccessTokenError,
    OauthLoginError,
    OauthLogoutError,
    OauthRefreshAccessTokenError,
    OauthSaveAccessTokenError,
    TokenInvalidError,
)
from backend.videos.models.token import AccessToken
from backend.videos.repositories.token_repository import TokenRepository
from backend.videos.services.oauth_clients import OAuthClient
from backend.videos.telemetry import TelemetryClient

LOGGER = logging.getLogger("video_gateways.oauth")


class OAuthGateway(Protocol):
    @property
    def handle(self) -> str:
        ...

    def auth_client(self) -> OAuthClient:
        ...


@dataclass(frozen=True)
class TokenLookup:
    token: AccessToken | None
    error: OauthAccessTokenNotFoundError | None = None

    @property
    def ok(self) -> bool:
        return self.token is not None


class OAuthCoordinator:
    """Token lifecycle for every gateway: code exchange, refresh-on-read, persistence."""

    def __init__(
        self,
        *,
        token_repository: TokenRepository,
        telemetry: TelemetryClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tokens = token_repository
        self._telemetry = telemetry or TelemetryClient.disabled()
        self._clock = clock

    def get_access_token(self, gateway: OAuthGateway) -> AccessToken:
        try:
            stored = self._tokens.get_by_gateway_handle(gateway.handle)
            try:
                token = AccessToken.from_payload(stored.access_token)
            except ValueError as exc:
                raise TokenInvalidError(
                    f"Stored token for gateway `{gateway.handle}` has no access token."
                ) from exc
            return self._refresh_if_expired(gateway, token)
        except Exception as exc:
            raise OauthAccessTokenNotFoundError(
                f"No usable access token for gateway `{gateway.handle}`: {exc}"
            ) from exc

    def try_get_access_token(self, gateway: OAuthGateway) -> TokenLookup:
        try:
            return TokenLookup(token=self.get_access_token(gateway))
        except OauthAccessTokenNotFoundError as exc:
            return TokenLookup(token=None, error=exc)

    def is_logged_in(self, gateway: OAuthGateway) -> bool:
        lookup = self.try_get_access_token(gateway)
        if not lookup.ok:
            LOGGER.debug("oauth is_logged_in gateway=%s result=false", gateway.handle)
        return lookup.ok

    def login(self, gateway: OAuthGateway, authorization_code: str) -> AccessToken:
        try:
            token = gateway.auth_client().exchange_code(authorization_code)
            self.save_access_token(gateway, token)
        except Exception as exc:
            self._telemetry.emit("oauth.login", gateway=gateway.handle, success=False)
            raise OauthLoginError(f"Couldn't login to `{gateway.handle}`: {exc}") from exc

        LOGGER.info("oauth login gateway=%s expires=%s", gateway.handle, token.expires)
        self._telemetry.emit("oauth.login", gateway=gateway.handle, success=True)
        return token

    def logout(self, gateway: OAuthGateway) -> None:
        try:
            self.delete_access_token(gateway)
        except OauthDeleteAccessTokenError as exc:
            raise OauthLogoutError(f"Couldn't logout from `{gateway.handle}`: {exc}") from exc
        self._telemetry.emit("oauth.logout", gateway=gateway.handle)

    def save_access_token(self, gateway: OAuthGateway, token: AccessToken) -> None:
        try:
            self._tokens.save(gateway.handle, token.to_payload())
        except Exception as exc:
            raise OauthSaveAccessTokenError(
                f"Couldn't save access token for `{gateway.handle}`: {exc}"
            ) from exc

    def delete_access_token(self, gateway: OAuthGateway) -> None:
        try:
            deleted = self._tokens.delete_by_gateway_handle(gateway.handle)
        except Exception as exc:
            raise OauthDeleteAccessTokenError(
                f"Couldn't delete access token for `{gateway.handle}`: {exc}"
            ) from exc
        LOGGER.info("oauth token_deleted gateway=%s existed=%s", gateway.handle, deleted)

    def _refresh_if_expired(self, gateway: OAuthGateway, token: AccessToken) -> AccessToken:
        if not token.has_expired(self._clock()):
            return token
        if token.refresh_token is None:
            raise TokenInvalidError(
                f"Access token for `{gateway.handle}` expired and cannot be refreshed."
            )

        LOGGER.info(
            "oauth token_refresh start gateway=%s expires=%s",
            gateway.handle,
            token.expires,
        )
        try:
            refreshed = gateway.auth_client().refresh(token.refresh_token)
        except Exception as exc:
            self._telemetry.emit("oauth.token.refresh", gateway=gateway.handle, success=False)
            raise OauthRefreshAccessTokenError(
                f"Couldn't refresh access token for `{gateway.handle}`: {exc}"
            ) from exc

        refreshed = refreshed.with_refresh_token(token.refresh_token)
        self.save_access_token(gateway, refreshed)
        self._telemetry.emit("oauth.token.refresh", gateway=gateway.handle, success=True)
        LOGGER.info(
            "oauth token_refresh done gateway=%s expires=%s",
            gateway.handle,
            refreshed.expires,
        )
        return refreshed
