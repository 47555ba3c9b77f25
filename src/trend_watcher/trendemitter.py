from __future__ import annotations

import dataclasses
import http.client
import logging
import re
from collections import deque
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .trendconfig import TrendConfig
    from .trendhistory import Trend
    from .trendmodel import Directory


@dataclasses.dataclass(frozen=True)
class Metric:
    metric_name: str
    dimensions: list[str]
    field_values: list[str]
    timestamp: int = 0


class TrendEmitter:
    """A class to emit directory metrics to various targets."""

    logger = logging.getLogger(__name__)

    def __init__(self, config: TrendConfig) -> None:
        """Initialize the emitter."""
        self._config = config
        self._metric_lines: deque[Metric] = deque()

    def emit(self, *, batch_size: int = 500) -> int:
        """
        Emit all stored metric lines to the configured targets. Empties the queue.

        Keyword Args:
            batch_size: The number of lines to emit at a time. Defaults to 500.

        Returns:
            The number of lines emitted.
        """
        count = 0
        while self._metric_lines:
            lines = self._get_lines(batch_size)

            self.to_stdout(lines)
            self.to_file(lines)
            self.to_telegraf(lines)

            count += len(lines)

        self.logger.info(f"Emitted {count} metric lines.")
        return count

    def add_line(
        self,
        metric_name: str,
        dimensions: list[str],
        field_values: list[str],
        timestamp: int = 0,
    ) -> None:
        """
        Add a line to the list of metric lines.

        Args:
            metric_name: The name of the metric.
            dimensions: A list of dimensions for the metric (aka keys/tags).
            field_values: A list of field values for the metric.
            timestamp: The timestamp for the metric. If 0, the current time is used.
                This is expected to be in seconds and is converted to milliseconds.
        """
        self._metric_lines.append(
            Metric(
                metric_name=metric_name,
                dimensions=dimensions,
                field_values=field_values,
                timestamp=(timestamp or int(datetime.now().timestamp())) * 1000,
            )
        )

    def add_directory(self, directory: Directory, trend: Trend, category: str) -> None:
        """Add the metric line of a directory and its trend."""
        segments = re.split(r"[\\/]", directory.path.lower().rstrip("\\/"))
        dimensions = [
            f"path={self._sanitize_tag(directory.relative_path)}",
            f"set={self._sanitize_tag(segments[-1])}",
            f"class={category}",
        ]

        stat = directory.current
        values = [f"value={stat.count}i", f"delta={trend.delta}i"]
        if not stat.is_empty:
            values.extend(
                [
                    f"bigger={stat.largest_size}i",
                    f"smaller={stat.smallest_size}i",
                    f"older={stat.oldest_age}i",
                    f"younger={stat.youngest_age}i",
                ]
            )

        self.add_line(self._config.metric_name, dimensions, values)

    def _get_lines(self, max_lines: int) -> list[str]:
        """Build a list of lines to emit, removing them from the emitter."""
        lines: list[str] = []
        while self._metric_lines and len(lines) < max_lines:
            metric = self._metric_lines.popleft()
            lines.append(
                f"{metric.metric_name},{','.join(metric.dimensions)} "
                f"{','.join(metric.field_values)} "
                f"{metric.timestamp}"
            )

        return lines

    def to_file(self, metric_lines: list[str]) -> None:
        """
        Emit metric lines to a file in line protocol format.

        Args:
            metric_lines: A list of lines to emit.

        Output:
            A file named <config_name>_<date>_metric_lines.txt
        """
        if not self._config.emit_file or not metric_lines:
            return
        date = datetime.now().strftime("%Y%m%d")
        filename = f"{self._config.config_name}_{date}_metric_lines.txt"

        with open(filename, "a") as file_out:
            file_out.write("\n".join(metric_lines) + "\n")

        self.logger.debug("Emitted %d lines to %s", len(metric_lines), filename)

    def to_stdout(self, metric_lines: list[str]) -> None:
        """
        Emit metric lines to stdout in line protocol format.

        Args:
            metric_lines: A list of lines to emit.
        """
        if not self._config.emit_stdout or not metric_lines:
            return

        print("\n".join(metric_lines))

        self.logger.debug("Emitted %d lines to stdout", len(metric_lines))

    def to_telegraf(self, metric_lines: list[str]) -> None:
        """
        Emit metric lines to a telegraf listener.

        Args:
            metric_lines: A list of lines to emit.
        """
        if not self._config.emit_telegraf or not metric_lines:
            return

        payload = "\n".join(metric_lines) + "\n"

        conn = http.client.HTTPConnection(
            host=self._config.telegraf_host,
            port=self._config.telegraf_port,
            timeout=3,
        )
        conn.request("POST", self._config.telegraf_path, payload.encode("utf-8"))

        response = conn.getresponse()
        if response.status != 204:
            self.logger.error(
                "Failed to emit %d lines to telegraf listener: %s",
                len(metric_lines),
                response.read(),
            )
        else:
            self.logger.debug(
                "Emitted %d lines to telegraf listener", len(metric_lines)
            )

    @staticmethod
    def _sanitize_tag(value: str) -> str:
        """Make a value safe for use as a line protocol tag."""
        value = re.sub(r"\s+", "_", value)
        return re.sub(r"([,=])", r"\\\1", value) or "."
