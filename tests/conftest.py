from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from backend.videos.config import OAuthProviderOptions
from backend.videos.dependencies import reset_cached_dependencies
from backend.videos.main import create_app
from backend.videos.models.token import AccessToken
from backend.videos.repositories.cache_repository import InMemoryCacheBackend
from backend.videos.repositories.database import Database
from backend.videos.repositories.token_repository import TokenRepository
from backend.videos.services.gateways.base import GatewayContext
from backend.videos.services.oauth_coordinator import OAuthCoordinator
from backend.videos.services.response_cache import ResponseCache

SeedToken = Callable[..., AccessToken]


def _test_oauth_options(handle: str) -> OAuthProviderOptions:
    return OAuthProviderOptions(
        client_id=f"{handle}-client-id",
        client_secret=f"{handle}-client-secret",
        redirect_uri="http://localhost:8000/oauth/callback",
    )


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "state.db")
    db.initialize()
    return db


@pytest.fixture
def token_repository(database: Database) -> TokenRepository:
    return TokenRepository(database)


@pytest.fixture
def response_cache() -> ResponseCache:
    return ResponseCache(InMemoryCacheBackend(), enabled=True, ttl_seconds=900)


@pytest.fixture
def oauth_coordinator(token_repository: TokenRepository) -> OAuthCoordinator:
    return OAuthCoordinator(token_repository=token_repository)


@pytest.fixture
def gateway_context(
    oauth_coordinator: OAuthCoordinator,
    response_cache: ResponseCache,
) -> GatewayContext:
    return GatewayContext(
        oauth=oauth_coordinator,
        cache=response_cache,
        oauth_options=_test_oauth_options,
        videos_per_page=30,
        http_timeout_seconds=5.0,
    )


@pytest.fixture
def seed_token(token_repository: TokenRepository) -> SeedToken:
    def _seed(handle: str, **overrides: Any) -> AccessToken:
        fields: dict[str, Any] = {
            "access_token": f"{handle}-access-token",
            "expires": None,
            "refresh_token": f"{handle}-refresh-token",
        }
        fields.update(overrides)
        token = AccessToken(**fields)
        token_repository.save(handle, token.to_payload())
        return token

    return _seed


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("VIDEO_GATEWAYS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("VIDEO_GATEWAYS_VIMEO_CLIENT_ID", "vimeo-client-id")
    monkeypatch.setenv("VIDEO_GATEWAYS_VIMEO_CLIENT_SECRET", "vimeo-client-secret")
    monkeypatch.setenv("VIDEO_GATEWAYS_TELEMETRY_SINK", "none")
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
