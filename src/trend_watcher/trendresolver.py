from __future__ import annotations

import dataclasses
import fnmatch
import logging
import os

from .trendmodel import FileEntry

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Resolution:
    """Concrete targets of a source specification."""

    files: list[FileEntry] = dataclasses.field(default_factory=list)
    lookups: dict[str, str] = dataclasses.field(default_factory=dict)
    errors: list[str] = dataclasses.field(default_factory=list)

    @property
    def had_error(self) -> bool:
        """True if any token could not be resolved."""
        return bool(self.errors)

    def add_lookup(self, base: str, name: str) -> None:
        """Merge a target name into the lookup of a base path."""
        names = self.lookups[base].split(";") if base in self.lookups else []
        if name.lower() not in (known.lower() for known in names):
            names.append(name)
        self.lookups[base] = ";".join(names)


def is_wildcard(token: str) -> bool:
    """True if the token contains glob characters."""
    return "*" in token or "?" in token


def split_named_directory(token: str, separator: str) -> tuple[str, str]:
    """
    Split a token ending with the separator into its base path and target name.

    `/data/queues/inbox/` is looked up as `inbox` anywhere below `/data/queues/`.

    Returns:
        A tuple of base path (with trailing separator) and target name.
    """
    segments = token.split(separator)
    target = segments[-2]
    if len(segments) == 2:
        return segments[0] + separator, target

    base = "".join(segment + separator for segment in segments[:-2])
    return base, target


def match_files(token: str, separator: str = os.sep) -> list[FileEntry]:
    """
    Return the entries of the token's parent directory matching its base name.

    Matching ignores case. Directories are included.

    Raises:
        OSError: The parent directory cannot be listed.
    """
    parent, _, pattern = token.rpartition(separator)
    if not parent and token.startswith(separator):
        parent = separator
    parent = parent or "."
    pattern = pattern.lower()

    matches: list[FileEntry] = []
    for name in sorted(os.listdir(parent)):
        if not fnmatch.fnmatchcase(name.lower(), pattern):
            continue

        path = os.path.join(parent, name)
        try:
            matches.append(FileEntry.from_path(path))
        except FileNotFoundError:
            # Removed between listing and stat
            logger.debug("'%s' moved during resolution.", path)

    return matches


def resolve_source(source: str, *, separator: str = os.sep) -> Resolution:
    """
    Resolve a `;` separated source specification.

    Wildcard and plain tokens are matched against their parent directory.
    Tokens ending with the separator become named directory lookups, merged
    by base path. A failing token is recorded and skipped.
    """
    resolution = Resolution()

    for token in (token.strip() for token in source.split(";")):
        if not token:
            continue

        if token.endswith(separator) and not is_wildcard(token):
            base, target = split_named_directory(token, separator)
            if not target:
                message = f"No directory name to look for in '{token}'"
                logger.error(message)
                resolution.errors.append(message)
                continue

            logger.debug("Looking for '%s' under '%s'", target, base)
            resolution.add_lookup(base, target)
            continue

        try:
            resolution.files.extend(match_files(token, separator))

        except OSError as error:
            message = f"Could not resolve '{token}': {error}"
            logger.error(message)
            resolution.errors.append(message)

    return resolution
