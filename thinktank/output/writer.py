"""Output file writing.

Provides atomic file writing so a reader never sees a partial output file.
"""

import contextlib
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog


logger = structlog.get_logger()


class FileWriteError(Exception):
    """Output content could not be persisted.

    Attributes:
        path: Target path of the failed write.
    """

    def __init__(self, message: str, path: Path) -> None:
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class WrittenFile:
    """Result of a successful write."""

    path: Path
    bytes_written: int
    sha256: str


class OutputWriter(Protocol):
    """Persists model output."""

    def save_to_file(self, content: str, path: Path) -> WrittenFile:
        """Write content to path.

        Raises:
            FileWriteError: If the content could not be written.
        """
        ...


class FileWriter:
    """Writes content to a temporary sibling, then renames it into place."""

    def __init__(self) -> None:
        """Initialize the writer."""
        self._log = logger.bind(component="file_writer")

    def save_to_file(self, content: str, path: Path) -> WrittenFile:
        """Write content to a file with atomic semantics.

        Parent directories are created as needed. Content is written
        byte-for-byte as UTF-8 with no newline translation.

        Args:
            content: Text to write.
            path: Target file path.

        Returns:
            WrittenFile describing the result.

        Raises:
            FileWriteError: If the directory or file cannot be written.
        """
        content_bytes = content.encode("utf-8")
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(content_bytes)
            temp_path.replace(path)
        except OSError as e:
            with contextlib.suppress(OSError):
                temp_path.unlink(missing_ok=True)
            msg = f"failed to write output file {path}: {e}"
            raise FileWriteError(msg, path) from e

        sha256 = hashlib.sha256(content_bytes).hexdigest()
        self._log.debug(
            "file_written",
            path=str(path),
            bytes=len(content_bytes),
            sha256=sha256[:12],
        )
        return WrittenFile(path=path, bytes_written=len(content_bytes), sha256=sha256)
