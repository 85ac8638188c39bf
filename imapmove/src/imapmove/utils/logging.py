"""JSON-lines progress log for a move run.

What:
  Emit one JSON object per line describing each step of a move (messages
  fetched, skipped, transferred, marked, expunged) so an interrupted run can be
  reconstructed from its log.

Why:
  A move touches personal mail and two sets of credentials. The trail must
  identify messages by UID and sender only, never by content, and must not
  repeat a password even when a caller logs an endpoint URL verbatim.

How:
  :class:`JsonLogger` writes ``ts``, ``lvl``, ``msg``, ``component``, its bound
  context, and the event fields. Before serialisation the fields are scrubbed:
  content keys are replaced, the password part of any ``*url`` value is masked,
  and lists and mappings are walked recursively.

Interfaces:
  :data:`CONTENT_KEYS`, :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Content and secret keys (:data:`CONTENT_KEYS`) become ``[redacted]`` at
    any depth, including inside lists of mappings.
  - UIDs, counts, reasons, and sender addresses are kept; they are what an
    operator needs to finish a move by hand.
  - Every line is flushed immediately.
"""
from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping


REDACTED = "[redacted]"

CONTENT_KEYS = frozenset({"subject", "body", "raw", "headers", "password"})
"""Fields carrying message content or credentials; never written to the log."""

_URL_PASSWORD = re.compile(r"(//[^:/@\s]*:)[^@/\s]*(@)")


@dataclass
class JsonLogger:
    """Structured move logger with content redaction.

    Attributes:
      stream: Text stream receiving one JSON object per line.
      component: Name written in every entry.
      context: Fields bound with :meth:`bind`, merged into every entry.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "imapmove"
    context: Dict[str, Any] = field(default_factory=dict)

    def bind(self, **fields: Any) -> "JsonLogger":
        """Return a logger writing to the same stream with ``fields`` added."""

        return JsonLogger(
            stream=self.stream,
            component=self.component,
            context={**self.context, **fields},
        )

    def log(self, level: str, message: str, **fields: Any) -> None:
        """Write one entry.

        Args:
          level: Severity, uppercased in the output.
          message: Event name such as ``"message_skipped"``.
          **fields: Event fields; scrubbed together with the bound context.
        """

        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        payload.update(_scrub({**self.context, **fields}))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log("WARN", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)


def _scrub(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: _scrub_value(key, value) for key, value in data.items()}


def _scrub_value(key: str, value: Any) -> Any:
    if key in CONTENT_KEYS:
        return REDACTED
    if isinstance(value, Mapping):
        return _scrub(value)
    if isinstance(value, (list, tuple)):
        return [_scrub_value("", item) for item in value]
    if key.endswith("url") and isinstance(value, str):
        return _URL_PASSWORD.sub(r"\1***\2", value)
    return value


def get_logger(component: str, stream: Any = None) -> JsonLogger:
    """Build a :class:`JsonLogger` for ``component`` on ``stream`` (stdout by default)."""

    if stream is None:
        return JsonLogger(component=component)
    return JsonLogger(stream=stream, component=component)
