"""
Error types and error logging for medianotes.

Repository and insight operations raise the exceptions below; nothing in the
core retries. The CLI logs full stack traces with log_exception() while
showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class MediaNotesError(Exception):
    """Base class for all medianotes errors."""


class NotFoundError(MediaNotesError):
    """An entity addressed by identifier does not exist in the store."""


class InvalidOperationError(MediaNotesError):
    """The request is not valid for the entity it targets. Never retried."""


class PersistenceError(MediaNotesError):
    """
    The underlying store failed.

    The original storage exception is available as ``__cause__``.
    """


class SaveError(PersistenceError):
    """Inserting a new entity failed; nothing was written."""


class GenerationError(MediaNotesError):
    """The model session failed, returned a malformed reply, or a tool raised."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting MEDIANOTES_STORE_PATH."""
    store = os.environ.get("MEDIANOTES_STORE_PATH")
    if store:
        return Path(store) / "medianotes-errors.log"
    return Path.home() / ".medianotes" / "medianotes-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Error log is best effort
    return log_path
