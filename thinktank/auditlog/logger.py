"""Audit log sinks."""

import threading
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

import structlog

from thinktank.auditlog.models import AuditEntry


logger = structlog.get_logger()


class AuditLogError(Exception):
    """An audit sink could not be opened or written."""


@runtime_checkable
class AuditLogger(Protocol):
    """Destination for audit entries."""

    def log(self, entry: AuditEntry) -> None:
        """Record one entry.

        Raises:
            AuditLogError: If the entry could not be recorded.
        """
        ...

    def close(self) -> None:
        """Release the sink. Safe to call more than once."""
        ...


class FileAuditLogger:
    """Appends audit entries to a file as JSON lines.

    Thread-safe: concurrent ``log`` calls never interleave within a line.
    """

    def __init__(self, path: Path) -> None:
        """Open the audit file for appending.

        Args:
            path: Audit log file; its directory must already exist.

        Raises:
            AuditLogError: If the file cannot be opened.
        """
        self._path = path
        self._lock = threading.Lock()
        self._log = logger.bind(component="auditlog", file_path=str(path))
        try:
            self._file: TextIO | None = path.open("a", encoding="utf-8")
        except OSError as e:
            msg = f"failed to open audit log file {path}: {e}"
            raise AuditLogError(msg) from e
        self._log.debug("audit_log_opened")

    @property
    def path(self) -> Path:
        """Audit file path."""
        return self._path

    def log(self, entry: AuditEntry) -> None:
        """Write one entry as a JSON line and flush it."""
        line = entry.model_dump_json(exclude_none=True)
        with self._lock:
            if self._file is None:
                msg = f"audit log {self._path} is closed"
                raise AuditLogError(msg)
            try:
                self._file.write(line + "\n")
                self._file.flush()
            except OSError as e:
                msg = f"failed to write audit entry to {self._path}: {e}"
                raise AuditLogError(msg) from e

    def close(self) -> None:
        """Close the file."""
        with self._lock:
            if self._file is None:
                return
            self._file.close()
            self._file = None
        self._log.debug("audit_log_closed")


class NoOpAuditLogger:
    """Discards every entry; used when no audit file is configured."""

    def log(self, entry: AuditEntry) -> None:  # noqa: ARG002
        """Discard the entry."""

    def close(self) -> None:
        """Nothing to release."""
