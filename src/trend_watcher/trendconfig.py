from __future__ import annotations

import logging
import os
from configparser import ConfigParser

from .trendhistory import DEFAULT_HISTORY_LIMIT

NEW_CONFIG = """\
[system]
# config_name should be unique for each configuration file.
config_name = {name}
# Snapshot of the directories and their history, enables trends between runs.
snapshot_path = {snapshot}
history = 10

[scan]
# Semicolon separated list. Wildcards are matched against their parent directory,
# a path ending with the separator looks for that directory name anywhere
# below its parent.
source = .{sep}*
# Semicolon separated directory names which are never walked.
exclude = .git
tree = false
feedback = 0

[report]
# Only report entries whose path contains this text.
select =
# Only report directories which are not empty or changed since the last run.
filter_null = false
details =
errors =

[emit]
# Metric names cannot contain spaces or commas.
metric_name = trend.watcher
stdout = false
file = false
telegraf = false

    """


class TrendConfig:
    """Configuration for the TrendWatcher."""

    logger = logging.getLogger(__name__)

    def __init__(self, filepath: str) -> None:
        """Load the configuration from the given file."""
        self._config = ConfigParser(interpolation=None)
        success = self._config.read(filepath)

        if not success:
            raise ValueError(f"Could not read config file at {filepath}")

        self.logger.debug("Loaded config from %s", filepath)

    @property
    def config_name(self) -> str:
        """Return the name of the config."""
        return self._config.get("system", "config_name", fallback="trend_watcher")

    @property
    def snapshot_path(self) -> str:
        """Return the path to the snapshot file, empty when trends are disabled."""
        return self._config.get("system", "snapshot_path", fallback="")

    @property
    def history(self) -> int:
        """Return the number of past runs kept per directory. Raises if below 1."""
        limit = self._config.getint(
            "system", "history", fallback=DEFAULT_HISTORY_LIMIT
        )
        if limit < 1:
            raise ValueError(f"history must be at least 1, got {limit}")
        return limit

    @property
    def source(self) -> str:
        """Return the source specification, empty if not set."""
        return self._config.get("scan", "source", fallback="").strip()

    @property
    def exclude(self) -> str:
        """Return the directory names excluded from the walk."""
        return self._config.get("scan", "exclude", fallback="")

    @property
    def separator(self) -> str:
        """Return the path separator used to read the source specification."""
        return self._config.get("scan", "separator", fallback="") or os.sep

    @property
    def tree(self) -> bool:
        """Return whether subtrees below target directories are aggregated."""
        return self._config.getboolean("scan", "tree", fallback=False)

    @property
    def feedback(self) -> int:
        """Return the progress interval in visited entries, 0 to disable."""
        return self._config.getint("scan", "feedback", fallback=0)

    @property
    def select(self) -> str:
        """Return the text reported paths must contain."""
        return self._config.get("report", "select", fallback="")

    @property
    def filter_null(self) -> bool:
        """Return whether directories without activity are left out of reports."""
        return self._config.getboolean("report", "filter_null", fallback=False)

    @property
    def details_path(self) -> str:
        """Return the path of the tab separated detail file, empty if disabled."""
        return self._config.get("report", "details", fallback="")

    @property
    def errors_path(self) -> str:
        """Return the path of the error file, empty if disabled."""
        return self._config.get("report", "errors", fallback="")

    @property
    def metric_name(self) -> str:
        """Return the name of the metric to use."""
        return self._config.get("emit", "metric_name", fallback="trend_watcher")

    @property
    def emit_stdout(self) -> bool:
        """Return whether to emit metrics to stdout."""
        return self._config.getboolean("emit", "stdout", fallback=False)

    @property
    def emit_file(self) -> bool:
        """Return whether to emit metrics to a file."""
        return self._config.getboolean("emit", "file", fallback=False)

    @property
    def emit_telegraf(self) -> bool:
        """Return whether to emit metrics to a telegraf listener."""
        return self._config.getboolean("emit", "telegraf", fallback=False)

    @property
    def telegraf_host(self) -> str:
        return self._config.get("emit", "telegraf_host", fallback="127.0.0.1")

    @property
    def telegraf_port(self) -> int:
        return self._config.getint("emit", "telegraf_port", fallback=8080)

    @property
    def telegraf_path(self) -> str:
        return self._config.get("emit", "telegraf_path", fallback="/telegraf")


def write_new_config(filename: str) -> None:
    """Write a new config file if one does not exist."""
    if os.path.exists(filename):
        return

    stem = filename[:-4] if filename.endswith(".ini") else filename
    config = NEW_CONFIG.format(
        name=os.path.basename(stem),
        snapshot=f"{stem}.json",
        sep=os.sep,
    )

    with open(filename, "w") as config_file:
        config_file.write(config)
