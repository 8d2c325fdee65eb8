from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, cast
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode, urljoin
from urllib.request import Request, urlopen

from backend.videos.errors import ApiResponseError

LOGGER = logging.getLogger("video_gateways.http")


class JsonApiClient:
    """Bearer-authenticated JSON GET client bound to one provider base URL."""

    def __init__(
        self,
        *,
        base_url: str,
        access_token: str,
        headers: Mapping[str, str] | None = None,
        http_timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._access_token = access_token
        self._headers = dict(headers or {})
        self._http_timeout_seconds = http_timeout_seconds

    @property
    def base_url(self) -> str:
        return self._base_url

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        url = urljoin(self._base_url, path.lstrip("/"))
        query = {
            key: _query_value(value) for key, value in (params or {}).items() if value is not None
        }
        if query:
            url = f"{url}?{urlencode(query)}"

        headers = {"Accept": "application/json", **self._headers}
        headers["Authorization"] = f"Bearer {self._access_token}"
        request = Request(url=url, headers=headers, method="GET")

        LOGGER.debug("provider request method=GET path=%s", path)
        try:
            with urlopen(request, timeout=self._http_timeout_seconds) as response:
                raw_body = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            response_body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            message = _extract_error_message(_decode_json(response_body)) or str(exc)
            raise ApiResponseError(
                f"Provider request failed ({exc.code}): {message}",
                status_code=exc.code,
            ) from exc
        except URLError as exc:
            raise ApiResponseError(f"Provider request failed: {exc.reason}") from exc

        decoded = _decode_json(raw_body)
        if not isinstance(decoded, dict):
            raise ApiResponseError(f"Provider returned a non-object JSON body for `{path}`.")
        payload = cast(dict[str, Any], decoded)
        error_message = _extract_error_message(payload)
        if "error" in payload and error_message is not None:
            raise ApiResponseError(f"Provider returned an error: {error_message}")
        return payload


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, list | tuple):
        return ",".join(str(item) for item in cast(list[Any], value))
    return str(value)


def _decode_json(raw_body: str) -> object:
    if not raw_body.strip():
        return None
    try:
        return json.loads(raw_body)
    except json.JSONDecodeError:
        return None


def _extract_error_message(payload: object) -> str | None:
    if not isinstance(payload, dict):
        return None
    payload_dict = cast(dict[str, object], payload)
    for key in ("developer_message", "error_description", "message", "error"):
        value = payload_dict.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, dict):
            nested = _extract_error_message(value)
            if nested is not None:
                return nested
    return None
