from __future__ import annotations

import base64
import json
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from importlib import import_module
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from backend.videos.config import OAuthProviderOptions
from backend.videos.errors import OauthClientError
from backend.videos.models.token import AccessToken

LOGGER = logging.getLogger("video_gateways.oauth")

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_TOKEN_RESPONSE_KNOWN_KEYS: frozenset[str] = frozenset(
    {"access_token", "expires_in", "expires", "refresh_token", "resource_owner_id"}
)


class OAuthClient(Protocol):
    def authorization_url(
        self,
        scope: Sequence[str],
        *,
        extra_params: Mapping[str, str] | None = None,
        state: str | None = None,
    ) -> str:
        ...

    def exchange_code(self, code: str) -> AccessToken:
        ...

    def refresh(self, refresh_token: str) -> AccessToken:
        ...


class StandardOAuthClient:
    """Authorization-code and refresh-token grants against a plain OAuth2 token endpoint."""

    def __init__(
        self,
        *,
        authorize_url: str,
        token_url: str,
        options: OAuthProviderOptions,
        http_timeout_seconds: float = 30.0,
        scope_separator: str = " ",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._authorize_url = authorize_url
        self._token_url = token_url
        self._options = options
        self._http_timeout_seconds = http_timeout_seconds
        self._scope_separator = scope_separator
        self._clock = clock

    def authorization_url(
        self,
        scope: Sequence[str],
        *,
        extra_params: Mapping[str, str] | None = None,
        state: str | None = None,
    ) -> str:
        params: dict[str, str] = {
            "client_id": self._options.client_id or "",
            "redirect_uri": self._options.redirect_uri,
            "response_type": "code",
        }
        if scope:
            params["scope"] = self._scope_separator.join(scope)
        if state:
            params["state"] = state
        params.update(extra_params or {})
        return f"{self._authorize_url}?{urlencode(params)}"

    def exchange_code(self, code: str) -> AccessToken:
        payload = self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._options.redirect_uri,
            }
        )
        return self._token_from_response(payload)

    def refresh(self, refresh_token: str) -> AccessToken:
        payload = self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        return self._token_from_response(payload)

    def _request_token(self, form: dict[str, str]) -> dict[str, object]:
        credentials = f"{self._options.client_id or ''}:{self._options.client_secret or ''}"
        request = Request(
            url=self._token_url,
            data=urlencode(form).encode("utf-8"),
            headers={
                "Accept": "application/json",
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": "Basic "
                + base64.b64encode(credentials.encode("utf-8")).decode("ascii"),
            },
            method="POST",
        )

        LOGGER.debug(
            "oauth token_request url=%s grant_type=%s",
            self._token_url,
            form["grant_type"],
        )
        try:
            with urlopen(request, timeout=self._http_timeout_seconds) as response:
                raw_body = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            response_body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            message = _extract_error_message(_decode_json_object(response_body)) or str(exc)
            raise OauthClientError(
                f"OAuth token request failed: {message}",
                status_code=exc.code,
            ) from exc
        except URLError as exc:
            raise OauthClientError(f"OAuth token request failed: {exc.reason}") from exc

        return _decode_json_object(raw_body)

    def _token_from_response(self, payload: dict[str, object]) -> AccessToken:
        access_token = _to_optional_text(payload.get("access_token"))
        if access_token is None:
            raise OauthClientError(
                _extract_error_message(payload) or "OAuth response missing access token."
            )

        expires_in = _to_optional_int(payload.get("expires_in"))
        expires = _to_optional_int(payload.get("expires"))
        if expires_in is not None:
            expires = int(self._clock()) + expires_in

        return AccessToken(
            access_token=access_token,
            expires=expires,
            refresh_token=_to_optional_text(payload.get("refresh_token")),
            resource_owner_id=_extract_resource_owner_id(payload),
            values={
                key: value
                for key, value in payload.items()
                if key not in _TOKEN_RESPONSE_KNOWN_KEYS
            },
        )


class GoogleOAuthClient:
    def __init__(
        self,
        *,
        options: OAuthProviderOptions,
        scope: Sequence[str],
    ) -> None:
        self._options = options
        self._scope = list(scope)

    def authorization_url(
        self,
        scope: Sequence[str],
        *,
        extra_params: Mapping[str, str] | None = None,
        state: str | None = None,
    ) -> str:
        flow = self._build_flow(scope)
        kwargs: dict[str, str] = dict(extra_params or {})
        if state:
            kwargs["state"] = state
        try:
            url, _ = flow.authorization_url(**kwargs)
        except Exception as exc:
            raise OauthClientError(f"Failed to build Google authorization URL: {exc}") from exc
        return str(url)

    def exchange_code(self, code: str) -> AccessToken:
        flow = self._build_flow(self._scope)
        try:
            flow.fetch_token(code=code)
        except Exception as exc:
            raise OauthClientError(f"Google authorization code exchange failed: {exc}") from exc
        return _token_from_credentials(flow.credentials)

    def refresh(self, refresh_token: str) -> AccessToken:
        try:
            credentials_module = import_module("google.oauth2.credentials")
            requests_module = import_module("google.auth.transport.requests")
        except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
            raise OauthClientError("Google OAuth requires the google-auth dependency") from exc

        credentials_cls: Any = credentials_module.Credentials
        request_cls: Any = requests_module.Request
        credentials = credentials_cls(
            token=None,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URL,
            client_id=self._options.client_id,
            client_secret=self._options.client_secret,
            scopes=self._scope,
        )
        try:
            credentials.refresh(request_cls())
        except Exception as exc:
            raise OauthClientError(f"Google token refresh failed: {exc}") from exc
        return _token_from_credentials(credentials)

    def _build_flow(self, scope: Sequence[str]) -> Any:
        try:
            flow_module = import_module("google_auth_oauthlib.flow")
        except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
            raise OauthClientError("Google OAuth requires google-auth-oauthlib") from exc

        flow_cls: Any = flow_module.Flow
        client_config = {
            "web": {
                "client_id": self._options.client_id or "",
                "client_secret": self._options.client_secret or "",
                "auth_uri": GOOGLE_AUTHORIZE_URL,
                "token_uri": GOOGLE_TOKEN_URL,
                "redirect_uris": [self._options.redirect_uri],
            }
        }
        return flow_cls.from_client_config(
            client_config,
            scopes=list(scope),
            redirect_uri=self._options.redirect_uri,
            autogenerate_code_verifier=False,
        )


def _token_from_credentials(credentials: Any) -> AccessToken:
    token = _to_optional_text(getattr(credentials, "token", None))
    if token is None:
        raise OauthClientError("Google OAuth response missing access token.")

    expiry = getattr(credentials, "expiry", None)
    expires: int | None = None
    if isinstance(expiry, datetime):
        # google-auth reports naive UTC datetimes.
        aware = expiry if expiry.tzinfo is not None else expiry.replace(tzinfo=UTC)
        expires = int(aware.timestamp())

    values: dict[str, Any] = {}
    scopes = getattr(credentials, "scopes", None)
    if isinstance(scopes, list | tuple):
        values["scope"] = " ".join(str(item) for item in cast(Sequence[Any], scopes))

    return AccessToken(
        access_token=token,
        expires=expires,
        refresh_token=_to_optional_text(getattr(credentials, "refresh_token", None)),
        values=values,
    )


def _extract_resource_owner_id(payload: dict[str, object]) -> str | None:
    explicit = payload.get("resource_owner_id")
    if isinstance(explicit, str | int) and not isinstance(explicit, bool):
        return str(explicit)

    user = payload.get("user")
    if isinstance(user, dict):
        uri = _to_optional_text(cast(dict[str, object], user).get("uri"))
        if uri is not None:
            return uri.rstrip("/").rsplit("/", 1)[-1]
    return None


def _decode_json_object(raw_body: str) -> dict[str, object]:
    if not raw_body.strip():
        return {}
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, dict):
        parsed_dict = cast(dict[object, object], parsed)
        return {key: value for key, value in parsed_dict.items() if isinstance(key, str)}
    return {}


def _extract_error_message(payload: dict[str, object]) -> str | None:
    for key in ("error_description", "developer_message", "message", "error"):
        value = _to_optional_text(payload.get(key))
        if value is not None:
            return value
    return None


def _to_optional_text(value: object) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return None


def _to_optional_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
