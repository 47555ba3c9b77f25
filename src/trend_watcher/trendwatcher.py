from __future__ import annotations

import dataclasses
import logging
import time
from contextlib import ExitStack

from .trendconfig import TrendConfig
from .trendemitter import TrendEmitter
from .trendhistory import classify
from .trendhistory import get_trend
from .trendmodel import Directories
from .trendmodel import FileEntry
from .trendresolver import resolve_source
from .trendsink import FILE_HEADER
from .trendsink import REPLAY_HEADER
from .trendsink import TREE_HEADER
from .trendsink import LineSink
from .trendstore import TrendStore
from .trendwalker import TreeWalker


@dataclasses.dataclass
class RunResult:
    """Outcome of one run."""

    directories: Directories
    files: list[FileEntry] = dataclasses.field(default_factory=list)
    file_count: int = 0
    dir_count: int = 0
    processed: int = 0
    had_error: bool = False
    elapsed: float = 0.0


class TrendWatcher:
    """Track file counts, sizes and ages of directories between runs."""

    logger = logging.getLogger(__name__)

    def __init__(self, config: TrendConfig, *, replay: bool = False) -> None:
        """
        Initialize a new TrendWatcher.

        Args:
            config: The configuration to use for this watcher.

        Keyword Args:
            replay: Report the snapshot as stored, without touching the
                file system or updating the snapshot.

        NOTE: The snapshot is not protected against concurrent writers. Two
            watchers should never share a config at the same time.
        """
        self._config = config
        self._replay = replay
        self._store = TrendStore.from_config(config)
        self._emitter = TrendEmitter(config)

    def run_once(self) -> RunResult:
        """Run the watcher once and emit the metrics."""
        result = self.run()
        self.emit()
        return result

    def run(self) -> RunResult:
        """
        Collect, report and persist the directories of the source specification.

        Raises:
            ValueError: The configuration is invalid.
            OSError: The detail or error file cannot be created.
        """
        source = self._config.source
        if not source and not self._replay:
            raise ValueError("Missing required source specification")
        history = self._config.history

        self.logger.info("Running watcher...")
        tic = time.perf_counter()

        with ExitStack() as stack:
            details = self._open_sink(
                stack, self._config.details_path, self._detail_header()
            )
            errors = self._open_sink(stack, self._config.errors_path)
            walker = TreeWalker(
                self._config.exclude,
                tree=self._config.tree,
                feedback=self._config.feedback,
                error_sink=errors,
                detail_sink=details,
            )

            result = self._collect(walker, source, history, errors)
            self._report(result, details)

        if self._store is not None and not self._replay:
            try:
                self._store.write(result.directories)
            except OSError as error:
                self.logger.error("Could not save snapshot: %s", error)
                result.had_error = True

        result.elapsed = time.perf_counter() - tic
        self.logger.info("Watcher finished in %s seconds", result.elapsed)
        self.logger.info(
            "Files/Dirs: %d processed on f/d(%d/%d)",
            result.processed,
            result.file_count,
            result.dir_count,
        )
        if result.had_error:
            self.logger.warning("Run finished with process errors")

        return result

    def emit(self) -> None:
        """Emit the metrics of the last run to defined outputs."""
        self.logger.info("Emitting metrics...")
        tic = time.perf_counter()

        self._emitter.emit()

        toc = time.perf_counter()
        self.logger.info("Emitting finished in %s seconds", toc - tic)

    def _collect(
        self,
        walker: TreeWalker,
        source: str,
        history: int,
        errors: LineSink | None,
    ) -> RunResult:
        """Load the snapshot and refresh it, or scan the source from scratch."""
        cached = None
        if self._store is not None:
            cached = self._store.read(None if self._replay else source)

        if cached is None and self._replay:
            self.logger.error("Nothing to replay, no usable snapshot")
            return RunResult(Directories(source=source), had_error=True)

        if cached is None:
            return self._scan(walker, source, errors)

        if self._replay:
            return RunResult(
                cached,
                file_count=sum(item.current.count for item in cached.sorted()),
                dir_count=len(cached),
            )

        self.logger.info("Quick Process - %d Directories", len(cached))
        for directory in cached.sorted():
            directory.rotate(walker.scan_directory(directory), history)

        return RunResult(
            cached,
            file_count=walker.file_count,
            dir_count=walker.dir_count,
            had_error=walker.error_count > 0,
        )

    def _scan(
        self,
        walker: TreeWalker,
        source: str,
        errors: LineSink | None,
    ) -> RunResult:
        """Resolve the source specification and walk every base path."""
        directories = Directories(source=source)
        resolution = resolve_source(source, separator=self._config.separator)
        if errors is not None:
            for message in resolution.errors:
                errors.write_line(message)

        had_error = resolution.had_error
        for base, lookfor in resolution.lookups.items():
            self.logger.info("Processing path %s looking for %s", base, lookfor)
            had_error = walker.walk(base, lookfor, directories) or had_error

        return RunResult(
            directories,
            files=resolution.files,
            file_count=walker.file_count + len(resolution.files),
            dir_count=walker.dir_count,
            had_error=had_error,
        )

    def _report(self, result: RunResult, details: LineSink | None) -> None:
        """Log the selected files and every directory with its trend."""
        select = self._config.select.lower()

        for entry in result.files:
            if not select or select in entry.name.lower():
                self.logger.info("File processed : %s", entry.name)
                result.processed += 1

        for directory in result.directories.sorted():
            count = directory.current.count
            trend = get_trend(count, directory.history)
            highlight = trend.highlight or (self._replay and count > 0)
            category = classify(count, directory.history, highlight)
            result.processed += count

            if self._config.filter_null and not highlight:
                continue
            if select and select not in directory.path.lower():
                continue

            self.logger.info(
                "Directory processed : %s - %d files%s", directory.path, count, trend.text
            )
            if details is not None and self._replay:
                details.write_row(directory.path, count, trend.text)

            self._emitter.add_directory(directory, trend, category)

            summary = directory.current.describe()
            if summary:
                self.logger.debug("%s\n%s", directory.path, summary)

    def _detail_header(self) -> tuple[str, ...]:
        if self._replay:
            return REPLAY_HEADER
        if self._config.tree:
            return TREE_HEADER
        return FILE_HEADER

    @staticmethod
    def _open_sink(
        stack: ExitStack,
        path: str,
        header: tuple[str, ...] | None = None,
    ) -> LineSink | None:
        """Open a sink for the path, None if the path is empty."""
        if not path:
            return None
        return stack.enter_context(LineSink(path, header))
