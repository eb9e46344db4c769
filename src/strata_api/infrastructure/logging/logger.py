# src/strata_api/infrastructure/logging/logger.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Structured JSON logging utilities.

This module exposes an idempotent root configurator and a per-module logger
factory that produce JSON logs suitable for ingestion by log pipelines.

Features:
    * Stable keys: ``ts``, ``level``, ``logger``, ``message``.
    * Automatic enrichment with ``request_id`` and ``org_id`` via contextvars.
    * Fields passed through ``extra={...}`` are emitted as top-level keys.

Typical usage:
    configure_root_logging()
    log = get_json_logger(__name__)
    log.info("values.save.start", extra={"entity_id": str(entity_id)})
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "bind_log_context",
    "configure_root_logging",
    "get_json_logger",
    "get_org_id",
    "get_request_id",
    "log_context",
]

# Per-request correlation context (task-local via contextvars).
_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("strata_request_id", default=None)
_ORG_ID_CTX: ContextVar[str | None] = ContextVar("strata_org_id", default=None)

# Attributes every LogRecord carries; anything else came from ``extra``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__.keys()
    | {"message", "asctime", "taskName"}
)


def bind_log_context(*, request_id: str | None = None, org_id: str | None = None) -> None:
    """Set correlation identifiers on the current context.

    Args:
        request_id: Correlation identifier of the inbound request, if any.
        org_id: Organization the current operation runs for, if any.

    Notes:
        Additive: passing only one argument leaves the other unchanged.
    """
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if org_id is not None:
        _ORG_ID_CTX.set(org_id)


@contextmanager
def log_context(*, request_id: str | None = None, org_id: str | None = None) -> Iterator[None]:
    """Bind correlation identifiers for the duration of a ``with`` block."""
    tokens = []
    if request_id is not None:
        tokens.append((_REQUEST_ID_CTX, _REQUEST_ID_CTX.set(request_id)))
    if org_id is not None:
        tokens.append((_ORG_ID_CTX, _ORG_ID_CTX.set(org_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def get_request_id() -> str | None:
    """Return the current request id from contextvars, if any."""
    return _REQUEST_ID_CTX.get(None)


def get_org_id() -> str | None:
    """Return the current organization id from contextvars, if any."""
    return _ORG_ID_CTX.get(None)


def _json_default(value: Any) -> str:
    return str(value)


class _JsonFormatter(logging.Formatter):
    """JSON log formatter emitting stable keys and extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object.

        Args:
            record: Logging record.

        Returns:
            JSON-encoded log line.
        """
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or _REQUEST_ID_CTX.get(None)
        if rid:
            payload["request_id"] = rid
        oid = getattr(record, "org_id", None) or _ORG_ID_CTX.get(None)
        if oid:
            payload["org_id"] = oid

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in payload:
                payload[key] = value

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def configure_root_logging(level: str | int | None = None) -> None:
    """Initialize the root logger with a JSON stream handler (idempotent).

    Args:
        level: Logging level or level name. If ``None``, use env ``LOG_LEVEL`` or ``INFO``.
    """
    root = logging.getLogger()

    env_level = os.getenv("LOG_LEVEL")
    resolved: int | str = (
        level if level is not None else (env_level.upper() if env_level else "INFO")
    )
    root.setLevel(resolved)

    if root.handlers:
        # Already configured; prevent duplicate handlers on reload.
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return a module-specific logger backed by the JSON root handler.

    This does *not* implicitly configure the root logger. Call
    :func:`configure_root_logging` once at startup for global defaults.

    Args:
        name: Logger name, typically ``__name__`` of the caller.

    Returns:
        Configured logger.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
