"""Logging setup: console formatter, trace-context filter, optional Cloud Logging."""

from __future__ import annotations

import json
import logging
import os
import time
import traceback
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
from logging.config import dictConfig
from typing import Any

from google.cloud import logging as gcp_logging
from opentelemetry import trace

from cube_sessions.config.observability import ObservabilitySettings

CLOUD_LOG_NAME = "cube-sessions"

_PACKAGE_LOGGER_ROOT = "cube_sessions"

# (logger name, env var controlling its level, default level)
_THIRD_PARTY_LOGGERS: tuple[tuple[str, str, str], ...] = (
    ("uvicorn", "UVICORN_LOG_LEVEL", "INFO"),
    ("uvicorn.error", "UVICORN_LOG_LEVEL", "INFO"),
    ("uvicorn.access", "UVICORN_ACCESS_LOG_LEVEL", "WARNING"),
    ("httpx", "HTTPX_LOG_LEVEL", "WARNING"),
    ("httpcore", "HTTPX_LOG_LEVEL", "WARNING"),
)


def _level(env_var: str, default: str) -> str:
    return os.getenv(env_var, default).upper()


def _json_lines_enabled() -> bool:
    # managed runtimes ingest one JSON object per line as a structured payload
    return bool(os.getenv("K_SERVICE") or os.getenv("KUBERNETES_SERVICE_HOST"))


def to_jsonable(value: Any, depth: int = 8) -> Any:
    """Best-effort conversion of log extras into JSON-compatible values."""
    if depth <= 0:
        return "<depth_exceeded>"
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return to_jsonable(value.value, depth - 1)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes len={len(value)}>"
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value), depth - 1)
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item, depth - 1) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item, depth - 1) for item in value]
    return str(value)


def _json_line(record: logging.LogRecord) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "message": record.getMessage(),
        "severity": record.levelname,
        "logger": record.name,
        "timestamp": (
            f"{time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created))}"
            f".{int(record.msecs):03d}Z"
        ),
    }
    data = record.__dict__.get("data")
    if data:
        payload["data"] = to_jsonable(data)
    if record.exc_info:
        payload["exception"] = "".join(traceback.format_exception(*record.exc_info)).rstrip("\n")
    json_fields = record.__dict__.get("json_fields")
    if isinstance(json_fields, Mapping):
        for key, value in json_fields.items():
            payload.setdefault(key, to_jsonable(value))
    return payload


class ExtrasFormatter(logging.Formatter):
    """Append the structured ``data`` extra to console lines."""

    def format(self, record: logging.LogRecord) -> str:
        if _json_lines_enabled():
            return json.dumps(_json_line(record), sort_keys=True, separators=(",", ":"))

        formatted = super().format(record)
        data = record.__dict__.get("data")
        if not data:
            return formatted
        try:
            encoded = json.dumps(data, sort_keys=True, separators=(",", ":"))
        except TypeError:
            encoded = json.dumps(to_jsonable(data), sort_keys=True, separators=(",", ":"))
        return f"{formatted} | data={encoded}"


class OtelContextLogFilter(logging.Filter):
    """Copy the active span's ids into ``json_fields`` so log lines join their trace."""

    def __init__(self, *, gcp_project_id: str | None = None) -> None:
        super().__init__()
        self._gcp_project_id = gcp_project_id.strip() if gcp_project_id else None

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if not span_context.is_valid:
            return True

        trace_id = f"{span_context.trace_id:032x}"
        span_id = f"{span_context.span_id:016x}"
        existing = record.__dict__.get("json_fields")
        fields = dict(existing) if isinstance(existing, Mapping) else {}
        fields["otel"] = {"trace_id": trace_id, "span_id": span_id}
        if self._gcp_project_id:
            fields.setdefault(
                "logging.googleapis.com/trace",
                f"projects/{self._gcp_project_id}/traces/{trace_id}",
            )
            fields.setdefault("logging.googleapis.com/spanId", span_id)
        record.__dict__["json_fields"] = fields
        return True


class CloudJsonSanitizer(logging.Filter):
    """Coerce ``data`` into JSON values before the Cloud Logging handler ships it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if "data" not in record.__dict__:
            return True
        data = to_jsonable(record.__dict__["data"])
        record.__dict__["data"] = data
        fields = record.__dict__.get("json_fields")
        merged = dict(fields) if isinstance(fields, Mapping) else {}
        merged.setdefault("data", data)
        record.__dict__["json_fields"] = merged
        return True


def build_log_config(
    *,
    root_level_env: str = "LOG_LEVEL",
    root_default: str = "INFO",
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
    cloud_log_name: str = CLOUD_LOG_NAME,
) -> dict[str, Any]:
    """Return a dictConfig-compatible logging configuration."""
    handler_names = ["console"]
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": "ext://sys.stdout",
            "filters": ["otel_context"],
        }
    }
    if cloud_logging_enabled:
        if not gcp_project:
            raise RuntimeError("GCP_PROJECT_ID is required when cloud logging is enabled")
        handlers["cloud_logging"] = _cloud_logging_handler(gcp_project, cloud_log_name)
        handler_names.append("cloud_logging")

    loggers = {
        name: {"level": _level(env_var, default), "handlers": list(handler_names), "propagate": False}
        for name, env_var, default in _THIRD_PARTY_LOGGERS
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": ExtrasFormatter,
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "filters": {
            "otel_context": {"()": OtelContextLogFilter, "gcp_project_id": gcp_project},
            "cloud_json_sanitizer": {"()": CloudJsonSanitizer},
        },
        "handlers": handlers,
        "root": {"level": _level(root_level_env, root_default), "handlers": list(handler_names)},
        "loggers": loggers,
    }


def _cloud_logging_handler(project: str, log_name: str) -> dict[str, Any]:
    from google.cloud.logging_v2.resource import Resource

    from cube_sessions.observability.gcp import CREDENTIALS_ENV, credentials_from_b64

    logger = logging.getLogger("cube_sessions.observability")
    blob = (os.getenv(CREDENTIALS_ENV) or "").strip()
    credentials = credentials_from_b64(blob) if blob else None
    start = time.monotonic()
    client: gcp_logging.Client = gcp_logging.Client(  # type: ignore[no-untyped-call]
        project=project,
        credentials=credentials,
    )
    logger.debug(
        "created google cloud logging client",
        extra={
            "data": {
                "project": project,
                "explicit_credentials": credentials is not None,
                "elapsed_s": round(time.monotonic() - start, 3),
            }
        },
    )
    return {
        "level": "INFO",
        "class": "google.cloud.logging_v2.handlers.handlers.CloudLoggingHandler",
        "client": client,
        "name": log_name,
        "resource": Resource("global", {"project_id": project}),
        "formatter": "console",
        "filters": ["otel_context", "cloud_json_sanitizer"],
    }


def configure_logging(
    *,
    root_level_env: str = "LOG_LEVEL",
    root_default: str = "INFO",
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
) -> None:
    config = build_log_config(
        root_level_env=root_level_env,
        root_default=root_default,
        cloud_logging_enabled=cloud_logging_enabled,
        gcp_project=gcp_project,
    )
    dictConfig(config)
    # package loggers inherit the root level unless configured explicitly
    package_logger = logging.getLogger(_PACKAGE_LOGGER_ROOT)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True
    logging.getLogger("cube_sessions.observability").debug(
        "configured logging",
        extra={"data": {"cloud_logging_enabled": cloud_logging_enabled, "gcp_project": gcp_project}},
    )


def init_logging(settings: ObservabilitySettings | None = None) -> None:
    """Configure logging from ``ObservabilitySettings`` (read from env when omitted)."""
    observability = settings or ObservabilitySettings()
    configure_logging(
        cloud_logging_enabled=observability.enable_cloud_logging,
        gcp_project=observability.gcp_project_id,
    )


def shutdown_logging() -> None:
    """Flush and close Cloud Logging handlers so buffered entries are not lost."""
    from google.cloud.logging_v2.handlers.handlers import CloudLoggingHandler

    loggers: list[logging.Logger] = [logging.getLogger()]
    loggers.extend(
        entry for entry in logging.Logger.manager.loggerDict.values() if isinstance(entry, logging.Logger)
    )
    seen: set[int] = set()
    for logger in loggers:
        for handler in logger.handlers:
            if id(handler) in seen or not isinstance(handler, CloudLoggingHandler):
                continue
            seen.add(id(handler))
            try:
                handler.flush()  # type: ignore[no-untyped-call]
                handler.close()  # type: ignore[no-untyped-call]
            except Exception as exc:  # noqa: BLE001
                logging.getLogger("cube_sessions.observability").warning(
                    "failed to flush cloud logging handler: %s", exc
                )


__all__ = [
    "CLOUD_LOG_NAME",
    "CloudJsonSanitizer",
    "ExtrasFormatter",
    "OtelContextLogFilter",
    "build_log_config",
    "configure_logging",
    "init_logging",
    "shutdown_logging",
    "to_jsonable",
]
