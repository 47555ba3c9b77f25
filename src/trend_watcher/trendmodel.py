from __future__ import annotations

import dataclasses
import enum
import os
import time

from .trendhistory import push_history


class Accumulation(enum.Enum):
    """How file sizes are folded into a Stat."""

    FILE = "file"
    TREE = "tree"


@dataclasses.dataclass(frozen=True)
class FileEntry:
    """A single entry seen during a walk."""

    path: str
    name: str
    size: int
    modified: float
    is_dir: bool = False

    @classmethod
    def from_path(cls, path: str) -> FileEntry:
        """
        Build an entry from the file system.

        Raises:
            OSError
        """
        result = os.stat(path)
        return cls(
            path=path,
            name=os.path.basename(path),
            size=result.st_size,
            modified=result.st_mtime,
            is_dir=os.path.isdir(path),
        )


@dataclasses.dataclass
class Stat:
    """Running aggregate of the files of one directory at one point in time."""

    count: int = 0
    smallest_size: int | None = None
    smallest_owner: str | None = None
    largest_size: int | None = None
    largest_owner: str | None = None
    youngest_age: int | None = None
    youngest_owner: str | None = None
    oldest_age: int | None = None
    oldest_owner: str | None = None

    @property
    def is_empty(self) -> bool:
        """True if no file was registered, extremes hold no data."""
        return self.count == 0

    def register(
        self,
        entry: FileEntry,
        mode: Accumulation = Accumulation.FILE,
        *,
        now: float | None = None,
    ) -> None:
        """Register an entry using the given accumulation strategy."""
        if mode is Accumulation.TREE:
            self.register_tree(entry, now=now)
        else:
            self.register_file(entry, now=now)

    def register_file(self, entry: FileEntry, *, now: float | None = None) -> None:
        """Track the smallest and largest individual file. Directories are ignored."""
        if entry.is_dir:
            return

        self.count += 1
        if self.largest_size is None or entry.size > self.largest_size:
            self.largest_size = entry.size
            self.largest_owner = entry.name

        if self.smallest_size is None or entry.size < self.smallest_size:
            self.smallest_size = entry.size
            self.smallest_owner = entry.name

        self._register_age(entry, now)

    def register_tree(self, entry: FileEntry, *, now: float | None = None) -> None:
        """Sum sizes into both bounds, keeping age extremes. Directories are ignored."""
        if entry.is_dir:
            return

        self.count += 1
        self.largest_size = (self.largest_size or 0) + entry.size
        self.smallest_size = (self.smallest_size or 0) + entry.size

        self._register_age(entry, now)

    def _register_age(self, entry: FileEntry, now: float | None) -> None:
        age = int((time.time() if now is None else now) - entry.modified)

        if self.oldest_age is None or age > self.oldest_age:
            self.oldest_age = age
            self.oldest_owner = entry.name

        if self.youngest_age is None or age < self.youngest_age:
            self.youngest_age = age
            self.youngest_owner = entry.name

    def describe(self) -> str:
        """Return a multi-line summary of the extremes, empty if nothing was seen."""
        if self.is_empty:
            return ""

        oldest = humanize_minutes((self.oldest_age or 0) // 60)
        youngest = humanize_minutes((self.youngest_age or 0) // 60)
        smallest = humanize_bytes(self.smallest_size or 0)
        largest = humanize_bytes(self.largest_size or 0)
        return (
            f"\tOldest:({self.oldest_owner}-{oldest})\n"
            f"\tNewest:({self.youngest_owner}-{youngest})\n"
            f"\tSmallest:({self.smallest_owner or 'total'}-{smallest})\n"
            f"\tLargest:({self.largest_owner or 'total'}-{largest})"
        )


@dataclasses.dataclass
class Directory:
    """A watched directory with its latest aggregate and past aggregates."""

    path: str
    base: str = ""
    mode: Accumulation = Accumulation.FILE
    current: Stat = dataclasses.field(default_factory=Stat)
    history: list[Stat] = dataclasses.field(default_factory=list)

    def __str__(self) -> str:
        """Return a string representation of the directory."""
        return f"{self.path} ({self.current.count} files, {len(self.history)} runs)"

    @property
    def relative_path(self) -> str:
        """Path with the walk base removed."""
        if self.base and self.path.startswith(self.base):
            return self.path[len(self.base) :]
        return self.path

    def rotate(self, stat: Stat, limit: int) -> None:
        """Push the current aggregate into history and replace it."""
        self.history = push_history(self.history, self.current, limit)
        self.current = stat


def directory_key(path: str) -> str:
    """Normalize a path for use as a unique key."""
    return os.path.normcase(os.path.normpath(path))


@dataclasses.dataclass
class Directories:
    """All directories collected for one source specification."""

    source: str = ""
    entries: dict[str, Directory] = dataclasses.field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and directory_key(path) in self.entries

    def add(self, directory: Directory) -> Directory:
        """Add a directory, replacing any existing entry with the same key."""
        self.entries[directory_key(directory.path)] = directory
        return directory

    def get(self, path: str) -> Directory | None:
        """Return the directory registered for the path, if any."""
        return self.entries.get(directory_key(path))

    def sorted(self) -> list[Directory]:
        """Return the directories ordered by key."""
        return [self.entries[key] for key in sorted(self.entries)]

    def matches_source(self, source: str) -> bool:
        """True if the collection was built from the given source."""
        return self.source.lower() == source.lower()


def humanize_unit(value: int, base: int, singular: str) -> str:
    """Return `value // base` with its unit when value exceeds base."""
    if value <= base:
        return ""

    amount = value // base
    plural = "s" if amount > 1 else ""
    return f"{amount} {singular}{plural} "


def humanize_minutes(minutes: int) -> str:
    """Render a number of minutes as days, hours and minutes."""
    text = humanize_unit(minutes, 1440, "day")
    minutes = minutes % 1440
    text += humanize_unit(minutes, 60, "hour")
    minutes = minutes % 60
    text += humanize_unit(minutes, 1, "minute")
    return text.strip() or "less than a minute"


def humanize_bytes(size: int) -> str:
    """Render a byte count with SI units."""
    if size < 10:
        return f"{size} B"

    units = ["B", "kB", "MB", "GB", "TB", "PB", "EB"]
    value = float(size)
    index = 0
    while value >= 1000 and index < len(units) - 1:
        value /= 1000
        index += 1

    if index == 0:
        return f"{size} B"
    if value < 10:
        return f"{value:.1f} {units[index]}"
    return f"{value:.0f} {units[index]}"
