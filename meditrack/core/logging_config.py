"""
Logging setup for MediTrack.

Every line is one JSON object on stderr, so logs never interleave with what a
caller prints on stdout. A MediTrackSession stamps its id into a context
variable on entry; the formatter copies it into each line, which lets all
lines from one load -> edit -> save cycle be grouped. Anything passed as
`extra=` ends up under the "extra" key:

    {"timestamp": "2024-01-15T10:30:00.000Z", "level": "INFO",
     "logger": "meditrack.repositories.flat_file_repository",
     "message": "Data saved to flat file", "session_id": "3f2a9c0d1e7b",
     "extra": {"path": "data/meditrack_data.txt", "patients": 2}}

LOG_LEVEL and LOG_FORMAT=text override the arguments of setup_logging().
"""
import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)


def get_session_id() -> Optional[str]:
    """Get the current session ID from context."""
    return session_id_var.get()


def set_session_id(session_id: Optional[str]) -> None:
    """Set the session ID in context for the running session."""
    session_id_var.set(session_id)


def clear_session_id() -> None:
    """Clear the session ID (call when a session closes)."""
    session_id_var.set(None)


# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """Render each record as one line of JSON, stamped in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        session_id = get_session_id()
        if session_id:
            entry["session_id"] = session_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}
        if extra:
            entry["extra"] = extra
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Send all logging to stderr through one handler.

    LOG_LEVEL overrides `level`; LOG_FORMAT ("json" or "text") overrides
    `json_format`. Call once at program start.
    """
    level = os.environ.get("LOG_LEVEL", level).upper()
    fmt = os.environ.get("LOG_FORMAT", "json" if json_format else "text").lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
    # Package loggers have no handlers of their own and propagate to root.
    logging.getLogger("meditrack").setLevel(level)

    logging.getLogger(__name__).debug("Logging configured", extra={"level": level, "format": fmt})
