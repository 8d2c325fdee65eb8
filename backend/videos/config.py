from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Literal, cast

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_DATA_DIR = Path(".video-gateways")
DEFAULT_OAUTH_REDIRECT_URI = "http://localhost:8000/oauth/callback"
_CONFIGURED_GATEWAYS: tuple[str, ...] = ("youtube", "vimeo")

# Paths that live under `data_dir` unless set explicitly.
_DATA_DIR_CHILDREN: dict[str, Path] = {"db_path": Path("state.db"), "log_dir": Path("logs")}
_PATH_FIELDS: tuple[str, ...] = ("data_dir", *_DATA_DIR_CHILDREN)
_FLAG_FIELDS: tuple[str, ...] = ("cache_enabled", "telemetry_enabled")
_OPTIONAL_TEXT_FIELDS: tuple[str, ...] = (
    *(
        f"{gateway}_{suffix}"
        for gateway in _CONFIGURED_GATEWAYS
        for suffix in ("client_id", "client_secret", "redirect_uri")
    ),
    "thumbnail_signing_key",
)
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class OAuthProviderOptions:
    client_id: str | None
    client_secret: str | None
    redirect_uri: str


def _under_data_dir(field_name: str) -> Path:
    return DEFAULT_DATA_DIR / _DATA_DIR_CHILDREN[field_name]


def _under_data_dir_note(field_name: str) -> str:
    child = _DATA_DIR_CHILDREN[field_name]
    return f"Defaults to `${{VIDEO_GATEWAYS_DATA_DIR}}/{child}` when not explicitly set."


def _absolute(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _coerce_flag(value: Any, *, fallback: bool) -> bool:
    """Read an on/off flag, keeping `fallback` for anything unrecognised."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return value == 1
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUTHY:
            return True
        if text in _FALSY:
            return False
    return fallback


def _blank_to_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class AppSettings(BaseSettings):
    """
    Runtime configuration for the video gateways service.

    Every option is read from `VIDEO_GATEWAYS_*` environment variables or `.env`.
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDEO_GATEWAYS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        validate_default=True,
    )

    # Paths.
    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Root runtime directory for the token database and logs.",
    )
    db_path: Path = Field(
        default=_under_data_dir("db_path"),
        description=f"SQLite database path. {_under_data_dir_note('db_path')}",
    )

    # Response cache and listings.
    cache_enabled: bool = Field(
        default=True,
        description="Enable the response cache for fetched videos and account info.",
    )
    cache_duration_seconds: int = Field(
        default=900,
        ge=1,
        description="TTL applied to cached videos and account info (PT15M by default).",
    )
    cache_key_prefix: str = Field(
        default="videos",
        description="Application prefix prepended to every cache key.",
    )
    videos_per_page: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Default page size for gateway video listings.",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for provider API and OAuth token endpoint calls.",
    )

    # OAuth provider options.
    oauth_redirect_uri: str = Field(
        default=DEFAULT_OAUTH_REDIRECT_URI,
        description="Redirect URI used by gateways without a dedicated one.",
    )
    youtube_client_id: str | None = Field(default=None, description="YouTube OAuth client id.")
    youtube_client_secret: str | None = Field(
        default=None,
        description="YouTube OAuth client secret.",
    )
    youtube_redirect_uri: str | None = Field(
        default=None,
        description="YouTube OAuth redirect URI. Falls back to `oauth_redirect_uri`.",
    )
    vimeo_client_id: str | None = Field(default=None, description="Vimeo OAuth client id.")
    vimeo_client_secret: str | None = Field(
        default=None,
        description="Vimeo OAuth client secret.",
    )
    vimeo_redirect_uri: str | None = Field(
        default=None,
        description="Vimeo OAuth redirect URI. Falls back to `oauth_redirect_uri`.",
    )
    extra_gateway_types: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Additional gateway classes to register, as `module.path:ClassName`.",
    )

    # Thumbnails.
    thumbnail_base_url: str = Field(
        default="/thumbnails",
        description="Base URL of the external thumbnail resize service.",
    )
    thumbnail_signing_key: str | None = Field(
        default=None,
        description="HMAC key used to sign thumbnail URLs. Unsigned URLs when not set.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_under_data_dir("log_dir"),
        description=f"Directory for log files. {_under_data_dir_note('log_dir')}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_GATEWAYS_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("VIDEO_GATEWAYS_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("cache_key_prefix", mode="before")
    @classmethod
    def _normalize_cache_key_prefix(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_GATEWAYS_CACHE_KEY_PREFIX must be a string.")
        normalized = value.strip().strip(".")
        if not normalized:
            raise ValueError("VIDEO_GATEWAYS_CACHE_KEY_PREFIX must not be empty.")
        return normalized

    @field_validator("thumbnail_base_url", mode="before")
    @classmethod
    def _normalize_thumbnail_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_GATEWAYS_THUMBNAIL_BASE_URL must be a string.")
        return value.strip().rstrip("/")

    @field_validator("extra_gateway_types", mode="before")
    @classmethod
    def _normalize_extra_gateway_types(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            candidates = value.split(",")
        elif isinstance(value, list | tuple):
            candidates = [str(item) for item in value]
        else:
            raise ValueError("VIDEO_GATEWAYS_EXTRA_GATEWAY_TYPES must be a list of strings.")
        return [candidate.strip() for candidate in candidates if candidate.strip()]

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        return None if value is None else _absolute(value)

    @field_validator(*_FLAG_FIELDS, mode="before")
    @classmethod
    def _normalize_flags(cls, value: Any, info: ValidationInfo) -> bool:
        fallback = cls.model_fields[cast(str, info.field_name)].default
        return _coerce_flag(value, fallback=bool(fallback))

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _blank_to_none(value)

    def oauth_provider_options(self, gateway_handle: str) -> OAuthProviderOptions:
        handle = gateway_handle.strip().lower()

        def provider_value(suffix: str) -> str | None:
            value = getattr(self, f"{handle}_{suffix}", None)
            return value if isinstance(value, str) else None

        return OAuthProviderOptions(
            client_id=provider_value("client_id"),
            client_secret=provider_value("client_secret"),
            redirect_uri=provider_value("redirect_uri") or self.oauth_redirect_uri,
        )

    def with_data_dir_defaults(self) -> AppSettings:
        """Re-root paths that were not set explicitly under ``data_dir``."""
        updates = {
            field_name: _absolute(self.data_dir / child)
            for field_name, child in _DATA_DIR_CHILDREN.items()
            if field_name not in self.model_fields_set
        }
        return self.model_copy(update=updates) if updates else self


def load_settings() -> AppSettings:
    return AppSettings().with_data_dir_defaults()
