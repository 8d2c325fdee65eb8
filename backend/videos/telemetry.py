from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import structlog

TelemetryValue = bool | int | float | str | None
TelemetrySinkName = Literal["none", "log"]

REDACTED = "[redacted]"

# OAuth grant material: exact keys plus any key containing a fragment.
_REDACTED_KEYS: frozenset[str] = frozenset({"code", "state", "authorization"})
_REDACTED_FRAGMENTS: tuple[str, ...] = ("token", "secret", "password", "credential")
_MAX_VALUE_CHARS = 160


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        ...


class DiscardingSink:
    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        return None


class LogSink:
    """Writes events to the isolated ``video_gateways.telemetry`` log stream."""

    def __init__(self) -> None:
        self._events = structlog.get_logger("video_gateways.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        self._events.info("telemetry", telemetry_event=event_name, **attributes)


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink
    defaults: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=DiscardingSink())

    def bind(self, **defaults: Any) -> TelemetryClient:
        return TelemetryClient(
            enabled=self.enabled,
            sink=self.sink,
            defaults={**self.defaults, **defaults},
        )

    def emit(self, event_name: str, **attributes: Any) -> None:
        if self.enabled:
            merged = {**self.defaults, **attributes}
            self.sink.emit(event_name=event_name, attributes=sanitize_attributes(merged))


def build_telemetry_client(*, enabled: bool, sink: TelemetrySinkName) -> TelemetryClient:
    if enabled and sink == "log":
        return TelemetryClient(enabled=True, sink=LogSink())
    if enabled and sink != "none":
        logging.getLogger("video_gateways.telemetry").warning(
            "telemetry sink not recognised, events will be dropped sink=%s", sink
        )
    return TelemetryClient.disabled()


def is_sensitive_key(key: str) -> bool:
    return key in _REDACTED_KEYS or any(fragment in key for fragment in _REDACTED_FRAGMENTS)


def sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    sanitized: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if key:
            sanitized[key] = REDACTED if is_sensitive_key(key) else _compact(raw_value)
    return sanitized


def _compact(value: Any) -> TelemetryValue:
    if isinstance(value, str):
        text = " ".join(value.split())
        return text if len(text) <= _MAX_VALUE_CHARS else text[:_MAX_VALUE_CHARS] + "..."
    if value is None or isinstance(value, bool | int | float):
        return value
    return type(value).__name__
