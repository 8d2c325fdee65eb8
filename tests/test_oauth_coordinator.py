from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from backend.videos.errors import (
    OauthAccessTokenNotFoundError,
    OauthClientError,
    OauthLoginError,
    OauthRefreshAccessTokenError,
    TokenInvalidError,
)
from backend.videos.models.token import AccessToken
from backend.videos.repositories.token_repository import TokenRepository
from backend.videos.services.oauth_coordinator import OAuthCoordinator
from backend.videos.telemetry import TelemetryClient

NOW = 1_800_000_000.0


class _FakeAuthClient:
    def __init__(
        self,
        *,
        refreshed: AccessToken | None = None,
        exchanged: AccessToken | None = None,
        error: Exception | None = None,
    ) -> None:
        self.refreshed = refreshed
        self.exchanged = exchanged
        self.error = error
        self.refresh_calls: list[str] = []
        self.exchange_calls: list[str] = []

    def authorization_url(
        self,
        scope: Sequence[str],
        *,
        extra_params: Mapping[str, str] | None = None,
        state: str | None = None,
    ) -> str:
        return f"https://provider.example/authorize?state={state}"

    def exchange_code(self, code: str) -> AccessToken:
        self.exchange_calls.append(code)
        if self.error is not None:
            raise self.error
        assert self.exchanged is not None
        return self.exchanged

    def refresh(self, refresh_token: str) -> AccessToken:
        self.refresh_calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        assert self.refreshed is not None
        return self.refreshed


class _FakeGateway:
    def __init__(self, handle: str, auth_client: _FakeAuthClient) -> None:
        self.handle = handle
        self._auth_client = auth_client

    def auth_client(self) -> _FakeAuthClient:
        return self._auth_client


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def _coordinator(
    token_repository: TokenRepository,
    sink: _CaptureSink | None = None,
) -> OAuthCoordinator:
    telemetry = TelemetryClient(enabled=True, sink=sink) if sink is not None else None
    return OAuthCoordinator(
        token_repository=token_repository,
        telemetry=telemetry,
        clock=lambda: NOW,
    )


def _store(token_repository: TokenRepository, handle: str, token: AccessToken) -> None:
    token_repository.save(handle, token.to_payload())


def test_valid_token_is_returned_without_refresh(token_repository: TokenRepository) -> None:
    auth_client = _FakeAuthClient()
    gateway = _FakeGateway("vimeo", auth_client)
    _store(
        token_repository,
        "vimeo",
        AccessToken(access_token="live", expires=int(NOW) + 60, refresh_token="r-1"),
    )

    token = _coordinator(token_repository).get_access_token(gateway)

    assert token.access_token == "live"
    assert auth_client.refresh_calls == []


def test_expired_token_is_refreshed_and_persisted(token_repository: TokenRepository) -> None:
    auth_client = _FakeAuthClient(
        refreshed=AccessToken(access_token="fresh", expires=int(NOW) + 3600),
    )
    gateway = _FakeGateway("vimeo", auth_client)
    _store(
        token_repository,
        "vimeo",
        AccessToken(access_token="stale", expires=int(NOW) - 3600, refresh_token="r-1"),
    )
    sink = _CaptureSink()

    token = _coordinator(token_repository, sink).get_access_token(gateway)

    assert token.access_token == "fresh"
    assert token.refresh_token == "r-1"
    assert auth_client.refresh_calls == ["r-1"]
    persisted = token_repository.get_by_gateway_handle("vimeo").access_token
    assert persisted["accessToken"] == "fresh"
    assert persisted["refreshToken"] == "r-1"
    assert ("oauth.token.refresh", {"gateway": "vimeo", "success": True}) in sink.events


def test_refresh_keeps_new_refresh_token_when_provider_rotates(
    token_repository: TokenRepository,
) -> None:
    auth_client = _FakeAuthClient(
        refreshed=AccessToken(access_token="fresh", expires=int(NOW) + 3600, refresh_token="r-2"),
    )
    _store(
        token_repository,
        "vimeo",
        AccessToken(access_token="stale", expires=int(NOW) - 1, refresh_token="r-1"),
    )

    token = _coordinator(token_repository).get_access_token(_FakeGateway("vimeo", auth_client))

    assert token.refresh_token == "r-2"


def test_expired_token_without_refresh_token_is_invalid(
    token_repository: TokenRepository,
) -> None:
    auth_client = _FakeAuthClient()
    gateway = _FakeGateway("youtube", auth_client)
    _store(token_repository, "youtube", AccessToken(access_token="stale", expires=int(NOW) - 1))
    coordinator = _coordinator(token_repository)

    with pytest.raises(OauthAccessTokenNotFoundError) as exc_info:
        coordinator.get_access_token(gateway)

    assert isinstance(exc_info.value.__cause__, TokenInvalidError)
    assert coordinator.is_logged_in(gateway) is False
    assert auth_client.refresh_calls == []


def test_failed_refresh_is_wrapped(token_repository: TokenRepository) -> None:
    auth_client = _FakeAuthClient(error=OauthClientError("invalid_grant", status_code=400))
    gateway = _FakeGateway("vimeo", auth_client)
    _store(
        token_repository,
        "vimeo",
        AccessToken(access_token="stale", expires=int(NOW) - 1, refresh_token="r-1"),
    )

    lookup = _coordinator(token_repository).try_get_access_token(gateway)

    assert lookup.ok is False
    assert isinstance(lookup.error, OauthAccessTokenNotFoundError)
    assert isinstance(lookup.error.__cause__, OauthRefreshAccessTokenError)
    assert token_repository.get_by_gateway_handle("vimeo").access_token["accessToken"] == "stale"


def test_missing_token_means_logged_out(token_repository: TokenRepository) -> None:
    gateway = _FakeGateway("vimeo", _FakeAuthClient())

    assert _coordinator(token_repository).is_logged_in(gateway) is False


def test_login_exchanges_code_and_stores_token(token_repository: TokenRepository) -> None:
    auth_client = _FakeAuthClient(
        exchanged=AccessToken(access_token="new", expires=int(NOW) + 3600, refresh_token="r-9"),
    )
    gateway = _FakeGateway("vimeo", auth_client)
    coordinator = _coordinator(token_repository)

    token = coordinator.login(gateway, "auth-code")

    assert token.access_token == "new"
    assert auth_client.exchange_calls == ["auth-code"]
    assert coordinator.is_logged_in(gateway) is True


def test_login_failure_raises_and_stores_nothing(token_repository: TokenRepository) -> None:
    auth_client = _FakeAuthClient(error=OauthClientError("bad code", status_code=400))
    gateway = _FakeGateway("vimeo", auth_client)
    coordinator = _coordinator(token_repository)

    with pytest.raises(OauthLoginError):
        coordinator.login(gateway, "bad")

    assert coordinator.is_logged_in(gateway) is False


def test_logout_deletes_token_and_tolerates_absent_token(
    token_repository: TokenRepository,
) -> None:
    gateway = _FakeGateway("vimeo", _FakeAuthClient())
    coordinator = _coordinator(token_repository)
    _store(token_repository, "vimeo", AccessToken(access_token="live"))

    coordinator.logout(gateway)
    coordinator.logout(gateway)

    assert coordinator.is_logged_in(gateway) is False
