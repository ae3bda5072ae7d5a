"""JSON log lines with redaction for the IMAP core.

What:
  Emit single-line JSON entries with a fixed envelope (``ts``, ``lvl``,
  ``msg``, ``component``) plus bound and per-call context, never carrying
  message content or credentials.

Why:
  Batch operations degrade per item (a folder whose ``STATUS`` fails, a message
  that does not parse) and the only trace of that degradation is the log.
  Entries must be greppable and must never leak subjects, bodies or secrets.

How:
  :class:`JsonLogger` merges its bound context with the call's keyword
  arguments, masks sensitive keys at any depth (mappings, lists and tuples),
  drops entries below ``min_level`` and writes with :func:`json.dumps`,
  flushing after every line. :meth:`JsonLogger.bind` derives a logger that
  repeats fields such as ``host`` on every entry.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`, :data:`LEVEL_ENV`.

Invariants & Safety:
  - Keys named ``subject``, ``body``, ``snippet``, ``secret``, ``password``
    or ``access_token`` (any case) are replaced with ``[redacted]``.
  - Values JSON cannot encode are rendered with ``str``.
"""
from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"subject", "body", "snippet", "secret", "password", "access_token"})
LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}
LEVEL_ENV = "VELOIMAP_LOG_LEVEL"


def _mask(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else _mask(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_mask(item) for item in value]
    return value


def _level_from_env() -> str:
    level = os.environ.get(LEVEL_ENV, "DEBUG").strip().upper()
    if level == "WARNING":
        level = "WARN"
    return level if level in LEVELS else "DEBUG"


@dataclass(frozen=True)
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    Attributes:
      stream: Destination with ``write``/``flush``; ``stderr`` by default so
        command output on ``stdout`` stays machine readable.
      component: Subsystem label included in every entry.
      min_level: Entries below this level are dropped.
      context: Fields repeated on every entry (see :meth:`bind`).
    """

    stream: Any = field(default_factory=lambda: sys.stderr)
    component: str = "veloimap"
    min_level: str = "DEBUG"
    context: Mapping[str, Any] = field(default_factory=dict)

    def bind(self, **fields: Any) -> "JsonLogger":
        """Return a logger that adds ``fields`` to each entry."""

        return replace(self, context={**self.context, **fields})

    def log(self, level: str, message: str, **fields: Any) -> None:
        level = level.upper()
        if LEVELS.get(level, 0) < LEVELS.get(self.min_level, 0):
            return
        entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level,
            "msg": message,
            "component": self.component,
        }
        entry.update(_mask({**self.context, **fields}))
        self.stream.write(json.dumps(entry, separators=(",", ":"), default=str) + "\n")
        self.stream.flush()

    def debug(self, message: str, **fields: Any) -> None:
        self.log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        """Record a degraded-but-continuing condition at ``WARN`` level."""

        self.log("WARN", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)


def get_logger(component: str, stream: Optional[Any] = None) -> JsonLogger:
    """Build a :class:`JsonLogger` for ``component``.

    The threshold comes from ``VELOIMAP_LOG_LEVEL`` (``DEBUG`` when unset).
    """

    if stream is None:
        return JsonLogger(component=component, min_level=_level_from_env())
    return JsonLogger(stream=stream, component=component, min_level=_level_from_env())
