from __future__ import annotations

import logging
import os
from collections.abc import Callable
from datetime import datetime

from .trendmodel import Accumulation
from .trendmodel import Directories
from .trendmodel import Directory
from .trendmodel import FileEntry
from .trendmodel import Stat
from .trendmodel import humanize_bytes
from .trendmodel import humanize_minutes
from .trendsink import LineSink

ProgressCallback = Callable[[int, int], None]


def split_names(names: str) -> set[str]:
    """Split a `;` separated list of names into a lowercase set."""
    return {name.strip().lower() for name in names.split(";") if name.strip()}


class TreeWalker:
    """Walk base paths, registering and aggregating target directories."""

    logger = logging.getLogger(__name__)

    def __init__(
        self,
        exclude: str = "",
        *,
        tree: bool = False,
        feedback: int = 0,
        progress: ProgressCallback | None = None,
        error_sink: LineSink | None = None,
        detail_sink: LineSink | None = None,
    ) -> None:
        """
        Initialize a new TreeWalker.

        Args:
            exclude: `;` separated directory names to prune, case insensitive.

        Keyword Args:
            tree: Also aggregate every directory one level below a target
                directory as the sum of its whole subtree.
            feedback: Report progress every `feedback` visited entries. 0
                disables progress reporting.
            progress: Called with the file and directory counts. Defaults to
                a debug log line.
            error_sink: When set, access errors are written here and the walk
                continues. Otherwise the walk of the current base is aborted.
            detail_sink: When set, receives one row per registered file (or
                per aggregated subtree in tree mode).
        """
        self._exclude = split_names(exclude)
        self._tree = tree
        self._feedback = feedback
        self._progress = progress or self._log_progress
        self._error_sink = error_sink
        self._detail_sink = detail_sink

        self.file_count = 0
        self.dir_count = 0
        self.error_count = 0
        self._visited = 0

    def walk(self, base: str, lookfor: str, directories: Directories) -> bool:
        """
        Walk the base path once, registering directories named in `lookfor`.

        Args:
            base: The path to descend from.
            lookfor: `;` separated directory names to register, case insensitive.
            directories: Collection receiving the registered directories.

        Returns:
            True if any error occurred during this walk.
        """
        names = split_names(lookfor)
        errors_before = self.error_count
        root = os.path.normpath(base)
        self.logger.debug("Processing path %s looking for %s", base, lookfor)

        if self._is_excluded(os.path.basename(root)):
            self.logger.debug("Skipped %s because in exclude list", root)
            return False

        try:
            self._visit_directory(base, root, names, directories)

            for dirpath, dirnames, filenames in os.walk(
                root, onerror=self._on_walk_error
            ):
                # Pruning in place stops os.walk from descending
                for dirname in list(dirnames):
                    if self._is_excluded(dirname):
                        self.logger.debug(
                            "Skipped %s because in exclude list",
                            os.path.join(dirpath, dirname),
                        )
                        dirnames.remove(dirname)
                        continue

                    path = os.path.join(dirpath, dirname)
                    self._visit_directory(base, path, names, directories)

                for filename in filenames:
                    self._visit_file(dirpath, filename, names, directories)

        except OSError as error:
            self.logger.error("Error walking the path %s: %s", base, error)

        self.logger.info(
            "Processed files(%d) & Directories(%d)", self.file_count, self.dir_count
        )
        return self.error_count > errors_before

    def walk_tree(self, path: str) -> Stat:
        """
        Aggregate every file below the path as one subtree Stat.

        No directory is pruned. Raises OSError on access errors when no error
        sink is configured.
        """
        stat = Stat()
        for dirpath, _, filenames in os.walk(path, onerror=self._on_walk_error):
            for filename in filenames:
                filepath = os.path.join(dirpath, filename)
                try:
                    entry = FileEntry.from_path(filepath)
                except OSError as error:
                    self._handle_error(filepath, error)
                    continue

                stat.register(entry, Accumulation.TREE)

        return stat

    def scan_directory(self, directory: Directory) -> Stat:
        """
        Build a fresh Stat for a known directory.

        File mode only reads the directory itself, tree mode aggregates the
        whole subtree. Errors are recorded and never raised; a directory that
        cannot be read yields an empty Stat.
        """
        self.dir_count += 1
        if directory.mode is Accumulation.TREE:
            try:
                stat = self.walk_tree(directory.path)
            except OSError:
                # Already counted and logged by _handle_error
                return Stat()

            self.file_count += stat.count
            self._tick()
            self._write_tree_detail(directory.base, directory.path, stat)
            return stat

        try:
            with os.scandir(directory.path) as scan:
                items = sorted(scan, key=lambda item: item.name)
        except OSError as error:
            self._record_error(directory.path, error)
            return Stat()

        stat = Stat()
        for item in items:
            try:
                if item.is_dir():
                    continue
                entry = FileEntry.from_path(item.path)
            except OSError as error:
                self._record_error(item.path, error)
                continue

            self.file_count += 1
            self._tick()
            self._write_file_detail(directory.path, entry)
            stat.register(entry, Accumulation.FILE)

        return stat

    def _visit_directory(
        self,
        base: str,
        path: str,
        names: set[str],
        directories: Directories,
    ) -> None:
        """Register the directory if targeted, or aggregate it in tree mode."""
        self.dir_count += 1
        self._tick()

        if os.path.basename(path).lower() in names:
            directories.add(Directory(path=path, base=base))
            return

        parent_name = os.path.basename(os.path.dirname(path)).lower()
        if not self._tree or parent_name not in names:
            return

        stat = self.walk_tree(path)
        directories.add(
            Directory(path=path, base=base, mode=Accumulation.TREE, current=stat)
        )
        self._write_tree_detail(base, path, stat)

    def _visit_file(
        self,
        dirpath: str,
        filename: str,
        names: set[str],
        directories: Directories,
    ) -> None:
        """Register the file into its parent when the parent is a target."""
        self.file_count += 1
        self._tick()

        if os.path.basename(dirpath).lower() not in names:
            return

        directory = directories.get(dirpath)
        if directory is None:
            return

        filepath = os.path.join(dirpath, filename)
        try:
            entry = FileEntry.from_path(filepath)
        except OSError as error:
            self._handle_error(filepath, error)
            return

        self._write_file_detail(dirpath, entry)
        directory.current.register(entry, directory.mode)

    def _is_excluded(self, name: str) -> bool:
        """True if the directory name is in the exclude list."""
        return name.lower() in self._exclude

    def _on_walk_error(self, error: OSError) -> None:
        """Receive listing errors from os.walk."""
        self._handle_error(error.filename or "", error)

    def _handle_error(self, path: str, error: OSError) -> None:
        """
        Record an access error. Without an error sink the error is re-raised.

        Raises:
            OSError
        """
        self._record_error(path, error)
        if self._error_sink is None:
            raise error

    def _record_error(self, path: str, error: OSError) -> None:
        """Count the error, log it and write it to the error sink."""
        self.error_count += 1
        message = f"Failure accessing a path {path}: {error}"
        self.logger.warning(message)
        if self._error_sink is not None:
            self._error_sink.write_line(message)

    def _tick(self) -> None:
        """Count a visited entry and report progress when due."""
        self._visited += 1
        if self._feedback > 0 and self._visited % self._feedback == 0:
            self._progress(self.file_count, self.dir_count)

    def _log_progress(self, file_count: int, dir_count: int) -> None:
        self.logger.debug("f/d(%d/%d)", file_count, dir_count)

    def _write_file_detail(self, dirpath: str, entry: FileEntry) -> None:
        # Tree mode details hold one row per subtree
        if self._detail_sink is None or self._tree:
            return

        modified = datetime.fromtimestamp(entry.modified).strftime("%Y-%m-%d %H:%M:%S")
        self._detail_sink.write_row(dirpath, entry.name, modified, entry.size)

    def _write_tree_detail(self, base: str, path: str, stat: Stat) -> None:
        # File mode details hold one row per file
        if self._detail_sink is None or not self._tree:
            return

        total = stat.largest_size or 0
        youngest = (stat.youngest_age or 0) // 60
        oldest = (stat.oldest_age or 0) // 60
        self._detail_sink.write_row(
            base,
            path,
            stat.count,
            total,
            humanize_bytes(total),
            youngest,
            humanize_minutes(youngest),
            oldest,
            humanize_minutes(oldest),
        )
