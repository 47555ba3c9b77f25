from __future__ import annotations

import argparse
import logging
import random
import shutil
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from string import ascii_lowercase

from trend_watcher.trendconfig import TrendConfig
from trend_watcher.trendwatcher import TrendWatcher

BASE_DIR: Path = Path(__file__).resolve().parent
TEST_DIR: Path = BASE_DIR / "smoketest_queues"
CONFIG: Path = TEST_DIR / "smoketest.ini"
FILE_COUNT_RANGE: tuple[int, int] = (0, 50)
FILE_SIZE_RANGE: tuple[int, int] = (0, 4096)
CHANCE_OF_DRAIN = 0.2  # out of 1.0

QUEUE_FOLDERS: list[Path] = [
    TEST_DIR / "initial_documents" / "inbox",
    TEST_DIR / "initial_documents" / "outbox",
    TEST_DIR / "final_documents" / "inbox",
    TEST_DIR / "final_documents" / "archive" / "inbox",
    TEST_DIR / "additional_documents" / "inbox",
]

logger = logging.getLogger(__name__)


def build_smoketest_directories() -> None:
    """Create the directories and the config for the smoketest."""
    for path in QUEUE_FOLDERS:
        logger.debug("Creating %s", path)
        path.mkdir(parents=True, exist_ok=True)

    CONFIG.write_text(
        "[system]\n"
        "config_name = smoketest\n"
        f"snapshot_path = {TEST_DIR / 'smoketest.json'}\n"
        "history = 5\n"
        "[scan]\n"
        f"source = {TEST_DIR}/inbox/;{TEST_DIR}/outbox/\n"
        "exclude = archive\n"
        "feedback = 25\n"
        "[report]\n"
        f"details = {TEST_DIR / 'details.tsv'}\n"
        f"errors = {TEST_DIR / 'errors.txt'}\n"
        "[emit]\n"
        "metric_name = smoketest\n"
        "stdout = true\n"
    )


def destroy_smoketest_directories() -> None:
    """Delete the directories for the smoketest."""
    logger.debug("Deleting %s", TEST_DIR)
    shutil.rmtree(TEST_DIR)


def _file_name() -> str:
    """Create a random eight character file name."""
    return "".join(random.choices(ascii_lowercase, k=8))


def churn_queue_directory(path: Path) -> None:
    """Drain or fill a queue directory with random files."""
    if random.random() < CHANCE_OF_DRAIN:
        logger.info("Draining %s", path)
        for file in path.iterdir():
            if file.is_file():
                file.unlink()
        return

    file_count = random.randint(*FILE_COUNT_RANGE)
    logger.info("Creating %s files in %s", file_count, path)
    for _ in range(file_count):
        size = random.randint(*FILE_SIZE_RANGE)
        (path / _file_name()).write_bytes(b"0" * size)


@contextmanager
def smoketest_runner() -> Generator[None, None, None]:
    """Build the smoketest directories, removing them when done."""
    logger.debug("Building smoketest directories...")
    build_smoketest_directories()

    try:
        yield None

    finally:
        logger.debug("Destroying smoketest directories...")
        destroy_smoketest_directories()


def parse_args() -> tuple[str, int]:
    """Parse command line arguments, return log level and number of runs."""
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level.",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=8,
        help="Number of runs between queue changes.",
    )
    args = parser.parse_args()
    return args.log_level, args.runs


def run() -> int:
    """Churn the queues and run the watcher between every change."""
    level, runs = parse_args()
    logging.basicConfig(level=level, format="%(asctime)s %(message)s")

    with smoketest_runner():
        config = TrendConfig(str(CONFIG))
        for _ in range(runs):
            for path in QUEUE_FOLDERS:
                churn_queue_directory(path)

            result = TrendWatcher(config).run_once()
            if result.had_error:
                logger.error("Run finished with errors")
                return 1

        TrendWatcher(config, replay=True).run()

    return 0


if __name__ == "__main__":
    raise SystemExit(run())
