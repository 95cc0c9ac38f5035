"""
Error types and error logging for roster.

Persistence failures are best-effort: they are logged and handed back to
the caller as a WriteResult, never raised out of a store operation.
"""

import os
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class RosterError(Exception):
    """Base class for roster errors."""


class PersistenceError(RosterError):
    """The backing store rejected a write."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class IntegrityError(RosterError):
    """A derived view disagrees with the record set it was computed from."""


@dataclass(frozen=True)
class WriteResult:
    """
    Outcome of a mutating store call.

    `found` is False when the target record does not exist (nothing was
    attempted). `error` is set when the in-memory change was applied but
    the backend write failed.
    """
    found: bool = True
    error: Optional[PersistenceError] = None

    @property
    def ok(self) -> bool:
        return self.found and self.error is None

    @property
    def persisted(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def not_found(cls) -> "WriteResult":
        return cls(found=False)

    @classmethod
    def failed(cls, error: PersistenceError) -> "WriteResult":
        return cls(found=True, error=error)


OK = WriteResult()


def _error_log_path(store_path: Optional[Path] = None) -> Path:
    """Resolve error log path: explicit store, then ROSTER_STORE_PATH, then ~/.roster."""
    if store_path is not None:
        return Path(store_path).expanduser() / "roster-errors.log"
    store = os.environ.get("ROSTER_STORE_PATH")
    if store:
        return Path(store) / "roster-errors.log"
    return Path.home() / ".roster" / "roster-errors.log"


def log_exception(
    exc: Exception,
    context: str = "",
    store_path: Optional[Path] = None,
) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        store_path: Store directory the failing command was using

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(store_path)
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
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path
