"""Logging setup: one stdout handler, JSON or text, tagged with the signature in flight."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from ..config.settings import MonitoringConfig, get_app_config

_SIGNATURE: ContextVar[Optional[str]] = ContextVar("log_signature", default=None)
_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime", "sig"}
# Per-request lines from the HTTP stacks drown the scanner output.
QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "websockets", "uvicorn.access")

_handler: Optional[logging.Handler] = None


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    ``sig`` is the transaction signature whose processing emitted the record,
    taken from :func:`signature_scope` at format time or from ``extra={"sig": ...}``.
    Any other ``extra`` keys are grouped under ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        signature = getattr(record, "sig", None) or _SIGNATURE.get()
        if signature:
            entry["sig"] = signature
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if extras:
            entry["extra"] = extras
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Terminal-friendly lines; the active signature is appended in brackets."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        signature = getattr(record, "sig", None) or _SIGNATURE.get()
        return f"{line} [{signature}]" if signature else line


def configure_logging(config: Optional[MonitoringConfig] = None) -> None:
    """Attach the bot's stdout handler to the root logger.

    The handler is installed once. Later calls only re-apply the level and the
    output format, so ``main`` can reconfigure after modules have logged.
    """

    global _handler
    cfg = config or get_app_config().monitoring
    root = logging.getLogger()
    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        root.addHandler(_handler)
        logging.captureWarnings(True)
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    _handler.setFormatter(TextFormatter() if cfg.log_format == "text" else StructuredFormatter())
    root.setLevel(_level(cfg.log_level))


def get_logger(name: str) -> logging.Logger:
    if _handler is None:
        configure_logging()
    return logging.getLogger(name)


@contextmanager
def signature_scope(signature: Optional[str]) -> Iterator[None]:
    """Tag every record logged inside the block with ``signature``."""

    token = _SIGNATURE.set(signature or None)
    try:
        yield
    finally:
        _SIGNATURE.reset(token)


def current_signature() -> Optional[str]:
    return _SIGNATURE.get()


__all__ = [
    "QUIET_LOGGERS",
    "StructuredFormatter",
    "TextFormatter",
    "configure_logging",
    "current_signature",
    "get_logger",
    "signature_scope",
]
