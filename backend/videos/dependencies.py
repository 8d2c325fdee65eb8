from __future__ import annotations

from functools import lru_cache

from backend.videos.config import AppSettings, load_settings
from backend.videos.repositories.cache_repository import CacheRepository
from backend.videos.repositories.database import Database
from backend.videos.repositories.token_repository import TokenRepository
from backend.videos.services.gateway_registry import GatewayRegistry
from backend.videos.services.gateways.base import GatewayContext
from backend.videos.services.oauth_coordinator import OAuthCoordinator
from backend.videos.services.response_cache import ResponseCache
from backend.videos.services.thumbnails import ThumbnailUrlBuilder
from backend.videos.services.video_service import VideoService
from backend.videos.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_oauth_coordinator() -> OAuthCoordinator:
    return OAuthCoordinator(
        token_repository=TokenRepository(get_database()),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_gateway_context() -> GatewayContext:
    settings = get_settings()
    return GatewayContext(
        oauth=get_oauth_coordinator(),
        cache=ResponseCache(
            CacheRepository(get_database()),
            enabled=settings.cache_enabled,
            ttl_seconds=settings.cache_duration_seconds,
            key_prefix=settings.cache_key_prefix,
        ),
        oauth_options=settings.oauth_provider_options,
        videos_per_page=settings.videos_per_page,
        http_timeout_seconds=settings.http_timeout_seconds,
        telemetry=get_telemetry(),
    )


def get_registry() -> GatewayRegistry:
    return GatewayRegistry.with_gateway_types(
        get_gateway_context(),
        extra_types=get_settings().extra_gateway_types,
    )


def get_video_service() -> VideoService:
    """Build a service with fresh gateways.

    Gateways memoize provider API clients, which are not thread-safe, so each
    request gets its own set. Tokens and cache stay shared.
    """
    settings = get_settings()
    return VideoService(
        registry=get_registry(),
        oauth=get_oauth_coordinator(),
        thumbnails=ThumbnailUrlBuilder(
            base_url=settings.thumbnail_base_url,
            signing_key=settings.thumbnail_signing_key,
        ),
        telemetry=get_telemetry(),
    )


def reset_cached_dependencies() -> None:
    get_gateway_context.cache_clear()
    get_oauth_coordinator.cache_clear()
    get_telemetry.cache_clear()
    get_database.cache_clear()
    get_settings.cache_clear()
