from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING
from typing import Any

from .trendmodel import Accumulation
from .trendmodel import Directories
from .trendmodel import Directory
from .trendmodel import Stat

if TYPE_CHECKING:
    from typing import Protocol

    class _TrendConfig(Protocol):
        @property
        def snapshot_path(self) -> str:
            ...


SNAPSHOT_VERSION = 2

logger = logging.getLogger(__name__)

# Snapshot key -> (Stat attribute, expected type)
STAT_FIELDS: dict[str, tuple[str, type]] = {
    "Lessbytes": ("smallest_size", int),
    "LessbytesFile": ("smallest_owner", str),
    "Morebytes": ("largest_size", int),
    "MorebytesFile": ("largest_owner", str),
    "Lesssecs": ("youngest_age", int),
    "LesssecsFile": ("youngest_owner", str),
    "Moresecs": ("oldest_age", int),
    "MoresecsFile": ("oldest_owner", str),
}

# Set on every Stat holding at least one file, in both accumulation modes
EXTREME_FIELDS = ("smallest_size", "largest_size", "youngest_age", "oldest_age")


class SnapshotError(ValueError):
    """The snapshot document cannot be used."""


def stat_to_dict(stat: Stat) -> dict[str, Any]:
    """Return the snapshot form of a Stat."""
    document: dict[str, Any] = {"Count": stat.count}
    for key, (attribute, _) in STAT_FIELDS.items():
        document[key] = getattr(stat, attribute)
    return document


def stat_from_dict(document: Any) -> Stat:
    """
    Build a Stat from its snapshot form.

    Raises:
        SnapshotError
    """
    if not isinstance(document, dict):
        raise SnapshotError(f"Stat must be an object, got {type(document).__name__}")

    count = document.get("Count")
    if not _is_int(count) or count < 0:
        raise SnapshotError(f"Invalid Count: {count!r}")

    values: dict[str, Any] = {"count": count}
    for key, (attribute, expected) in STAT_FIELDS.items():
        value = document.get(key)
        if value is not None and not _matches_type(value, expected):
            raise SnapshotError(f"Invalid {key}: {value!r}")
        values[attribute] = value

    if count > 0:
        missing = [name for name in EXTREME_FIELDS if values[name] is None]
        if missing:
            raise SnapshotError(f"Count {count} without {', '.join(missing)}")
    elif any(values[attribute] is not None for attribute, _ in STAT_FIELDS.values()):
        raise SnapshotError("Count 0 with extremes set")

    return Stat(**values)


def directory_to_dict(directory: Directory) -> dict[str, Any]:
    """Return the snapshot form of a Directory."""
    return {
        "Path": directory.path,
        "Base": directory.base,
        "Mode": directory.mode.value,
        "Current": stat_to_dict(directory.current),
        "Histories": [stat_to_dict(stat) for stat in directory.history],
    }


def directory_from_dict(document: Any) -> Directory:
    """
    Build a Directory from its snapshot form.

    Raises:
        SnapshotError
    """
    if not isinstance(document, dict):
        raise SnapshotError("Directory must be an object")

    path = document.get("Path")
    base = document.get("Base", "")
    histories = document.get("Histories")
    if not isinstance(path, str) or not path:
        raise SnapshotError(f"Invalid Path: {path!r}")
    if not isinstance(base, str):
        raise SnapshotError(f"Invalid Base for {path}: {base!r}")
    if not isinstance(histories, list):
        raise SnapshotError(f"Invalid Histories for {path}")

    try:
        mode = Accumulation(document.get("Mode", Accumulation.FILE.value))
    except ValueError as error:
        raise SnapshotError(f"Invalid Mode for {path}") from error

    return Directory(
        path=path,
        base=base,
        mode=mode,
        current=stat_from_dict(document.get("Current")),
        history=[stat_from_dict(stat) for stat in histories],
    )


def dumps(directories: Directories) -> bytes:
    """Serialize the directories, with their full history, to a JSON document."""
    document = {
        "Version": SNAPSHOT_VERSION,
        "Src": directories.source,
        "Directories": [directory_to_dict(item) for item in directories.sorted()],
    }
    return json.dumps(document, indent=2).encode("utf-8")


def parse(data: bytes | str, source: str | None = None) -> Directories:
    """
    Deserialize a snapshot document.

    Args:
        data: The JSON document.
        source: The source specification the snapshot must have been built
            from, compared case insensitively. None accepts any source.

    Raises:
        SnapshotError
    """
    try:
        document = json.loads(data)
    except (ValueError, RecursionError) as error:
        # Decode errors, integer literals over the digit limit, deep nesting
        raise SnapshotError(f"Malformed snapshot: {error}") from error

    if not isinstance(document, dict):
        raise SnapshotError("Snapshot must be an object")

    version = document.get("Version")
    if version != SNAPSHOT_VERSION:
        raise SnapshotError(f"Unsupported snapshot version: {version!r}")

    src = document.get("Src")
    items = document.get("Directories")
    if not isinstance(src, str):
        raise SnapshotError("Snapshot has no Src")
    if not isinstance(items, list):
        raise SnapshotError("Snapshot Directories must be an array")

    directories = Directories(source=src)
    if source is not None and not directories.matches_source(source):
        raise SnapshotError(f"Different Src args: {src!r} != {source!r}")

    for item in items:
        directories.add(directory_from_dict(item))

    return directories


def loads(data: bytes | str, source: str | None = None) -> Directories | None:
    """Deserialize a snapshot document, or return None when it is not usable."""
    try:
        return parse(data, source)

    except SnapshotError as error:
        logger.warning("Snapshot not usable: %s", error)
        return None


class TrendStore:
    """Snapshot file holding the directories and their history between runs."""

    logger = logging.getLogger(__name__)

    def __init__(self, path: str) -> None:
        """
        Initialize a store backed by the given file.

        NOTE: The file is not protected against concurrent writers. Only one
            run should use a given snapshot path at a time.
        """
        self.path = path

    @classmethod
    def from_config(cls, config: _TrendConfig) -> TrendStore | None:
        """Build a TrendStore from the given configuration, None if disabled."""
        if not config.snapshot_path:
            return None
        return cls(config.snapshot_path)

    def read(self, source: str | None = None) -> Directories | None:
        """Read the snapshot, None if missing or not usable for the source."""
        if not os.path.exists(self.path):
            self.logger.info("No snapshot at %s", self.path)
            return None

        try:
            with open(self.path, "rb") as snapshot_file:
                data = snapshot_file.read()

        except OSError as error:
            self.logger.warning("Could not read snapshot %s: %s", self.path, error)
            return None

        directories = loads(data, source)
        if directories is None:
            self.logger.info("Start from empty snapshot, %s not usable", self.path)
        else:
            self.logger.debug("Loaded %d directories from %s", len(directories), self.path)

        return directories

    def write(self, directories: Directories) -> None:
        """
        Write the snapshot.

        Raises:
            OSError
        """
        with open(self.path, "wb") as snapshot_file:
            snapshot_file.write(dumps(directories))

        self.logger.debug("Saved %d directories to %s", len(directories), self.path)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _matches_type(value: Any, expected: type) -> bool:
    if expected is int:
        return _is_int(value)
    return isinstance(value, expected)
