from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor

from backend.videos.config import AppSettings
from backend.videos.telemetry import REDACTED, is_sensitive_key

ROOT_LOGGER_NAME = "video_gateways"
TELEMETRY_LOGGER_NAME = "video_gateways.telemetry"
LOG_FILE_NAME = "video-gateways.log"
TELEMETRY_LOG_FILE_NAME = "video-gateways-telemetry.log"
# Third-party loggers that are chatty at INFO/DEBUG.
_QUIET_LIBRARY_LOGGERS: tuple[str, ...] = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google_auth_oauthlib.flow",
    "urllib3",
)


def configure_application_logging(settings: AppSettings) -> Path:
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME
    telemetry_log_file = settings.log_dir / TELEMETRY_LOG_FILE_NAME

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _redact_secrets,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = _isolated_logger(ROOT_LOGGER_NAME, level=logging.DEBUG)
    root_logger.addHandler(
        _console_handler(sys.stdout, level=_console_level(settings.log_level))
    )
    root_logger.addHandler(_json_file_handler(log_file, level=logging.DEBUG))

    telemetry_logger = _isolated_logger(TELEMETRY_LOGGER_NAME, level=logging.INFO)
    telemetry_logger.addHandler(_json_file_handler(telemetry_log_file, level=logging.INFO))

    for library_logger in _QUIET_LIBRARY_LOGGERS:
        logging.getLogger(library_logger).setLevel(logging.WARNING)

    root_logger.info(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        settings.log_level.upper(),
        log_file,
        telemetry_log_file,
    )
    return log_file


def _console_level(raw_level: str) -> int:
    level = logging.getLevelName(raw_level.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _isolated_logger(name: str, *, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    while logger.handlers:
        stale = logger.handlers[0]
        logger.removeHandler(stale)
        stale.close()
    return logger


def _formatted(
    handler: logging.Handler,
    *,
    level: int,
    renderers: list[Processor],
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
                _redact_secrets,
            ],
            processors=renderers,
        )
    )
    return handler


def _console_handler(stream: TextIO, *, level: int) -> logging.Handler:
    return _formatted(
        logging.StreamHandler(stream=stream),
        level=level,
        renderers=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=_stream_supports_color(stream)),
        ],
    )


def _json_file_handler(path: Path, *, level: int) -> logging.Handler:
    return _formatted(
        logging.FileHandler(path, encoding="utf-8"),
        level=level,
        renderers=[
            _add_source_location,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _redact_secrets(_logger: object, _method_name: str, event_dict: EventDict) -> EventDict:
    for key in [key for key in event_dict if is_sensitive_key(key)]:
        event_dict[key] = REDACTED
    return event_dict


def _add_source_location(_logger: object, _method_name: str, event_dict: EventDict) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict.update(module=record.module, lineno=record.lineno, func_name=record.funcName)
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return callable(isatty) and bool(isatty())
    except ValueError:
        return False
