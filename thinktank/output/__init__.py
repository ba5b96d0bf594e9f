"""Output persistence."""

from thinktank.output.writer import (
    FileWriteError,
    FileWriter,
    OutputWriter,
    WrittenFile,
)


__all__ = ["FileWriteError", "FileWriter", "OutputWriter", "WrittenFile"]
