"""Unit tests for FileWriter."""

import hashlib
from pathlib import Path

import pytest

from thinktank.output import FileWriteError, FileWriter


class TestFileWriter:
    """Tests for FileWriter.save_to_file."""

    def test_writes_content_verbatim(self, tmp_path: Path) -> None:
        """Should write UTF-8 bytes without newline translation."""
        path = tmp_path / "out.md"
        content = "line one\r\nline two\nünïcode"

        written = FileWriter().save_to_file(content, path)

        assert path.read_bytes() == content.encode("utf-8")
        assert written.path == path
        assert written.bytes_written == len(content.encode("utf-8"))
        assert written.sha256 == hashlib.sha256(content.encode("utf-8")).hexdigest()

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        """Should create missing directories."""
        path = tmp_path / "a" / "b" / "out.md"

        FileWriter().save_to_file("x", path)

        assert path.read_text() == "x"

    def test_overwrites_and_leaves_no_temp_file(self, tmp_path: Path) -> None:
        """Should replace existing files atomically."""
        path = tmp_path / "out.md"
        path.write_text("old")

        FileWriter().save_to_file("new", path)

        assert path.read_text() == "new"
        assert list(tmp_path.iterdir()) == [path]

    def test_failure_raises_file_write_error(self, tmp_path: Path) -> None:
        """Should raise FileWriteError when the parent is a file."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        path = blocker / "out.md"

        with pytest.raises(FileWriteError) as exc_info:
            FileWriter().save_to_file("x", path)

        assert exc_info.value.path == path
        assert isinstance(exc_info.value.__cause__, OSError)
