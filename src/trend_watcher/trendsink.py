from __future__ import annotations

import logging
from typing import IO
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType

FILE_HEADER = ("path", "name", "modified", "size")
TREE_HEADER = (
    "base",
    "path",
    "filecount",
    "totalsize",
    "size",
    "youngest_min",
    "youngest",
    "oldest_min",
    "oldest",
)
REPLAY_HEADER = ("path", "filecount", "trend")


class LineSink:
    """A line oriented text file, tab separated when written by row."""

    logger = logging.getLogger(__name__)

    def __init__(self, path: str, header: tuple[str, ...] | None = None) -> None:
        """
        Initialize a sink writing to the given path. Nothing is opened yet.

        It is recommended to use the `with` statement so the file is created
        on entry and closed on exit:

            with LineSink("details.tsv", FILE_HEADER) as sink:
                sink.write_row("/tmp", "file.txt", "2024-01-01", 12)

        Args:
            path: The file to create or truncate.
            header: Column names written as the first row.
        """
        self.path = path
        self._header = header
        self._file: IO[str] | None = None
        self.lines_written = 0

    def __enter__(self) -> LineSink:
        """Open the file. Raises OSError when the path is not writable."""
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close the file."""
        self.close()

    def open(self) -> None:
        """
        Create the file and write the header.

        Raises:
            OSError
        """
        self._file = open(self.path, "w", encoding="utf-8")
        self.logger.debug("Opened %s", self.path)
        if self._header:
            self.write_row(*self._header)

    def close(self) -> None:
        """Close the file if open."""
        if self._file is None:
            return
        self._file.close()
        self._file = None
        self.logger.debug("Closed %s after %d lines", self.path, self.lines_written)

    def write_line(self, line: str) -> None:
        """Write a single line."""
        if self._file is None:
            raise RuntimeError(f"Sink {self.path} is not open")

        self._file.write(line.rstrip("\n") + "\n")
        self.lines_written += 1

    def write_row(self, *values: object) -> None:
        """Write the values as one tab separated line."""
        self.write_line("\t".join(str(value) for value in values))
