from __future__ import annotations

import json
import os
from pathlib import Path

from trend_watcher.trendconfig import TrendConfig
from trend_watcher.trendwatcher import TrendWatcher


def write_config(tmp_path: Path, queues: Path) -> str:
    sep = os.sep
    config_path = tmp_path / "integration.ini"
    config_path.write_text(
        "[system]\n"
        "config_name = integration\n"
        f"snapshot_path = {tmp_path / 'integration.json'}\n"
        "history = 3\n"
        "[scan]\n"
        f"source = {queues}{sep}inbox{sep};{queues}{sep}outbox{sep}\n"
        "exclude = archive\n"
        "[report]\n"
        f"details = {tmp_path / 'details.tsv'}\n"
        f"errors = {tmp_path / 'errors.txt'}\n"
    )
    return str(config_path)


def test_integration_against_generated_queues(tmp_path: Path) -> None:
    queues = tmp_path / "queues"
    for name in ["inbox", "outbox", "archive/inbox"]:
        (queues / name).mkdir(parents=True)
    (queues / "inbox" / "a.txt").write_text("a")
    (queues / "archive" / "inbox" / "old.txt").write_text("old")

    config = TrendConfig(write_config(tmp_path, queues))

    for run in range(5):
        (queues / "inbox" / f"run{run}.txt").write_text("x" * run)
        result = TrendWatcher(config).run_once()
        assert result.had_error is False

    with open(tmp_path / "integration.json") as snapshot_file:
        document = json.load(snapshot_file)

    assert document["Src"] == config.source
    paths = [item["Path"] for item in document["Directories"]]
    assert paths == [str(queues / "inbox"), str(queues / "outbox")]

    inbox = document["Directories"][0]
    assert inbox["Current"]["Count"] == 6
    assert [stat["Count"] for stat in inbox["Histories"]] == [3, 4, 5]
    assert inbox["Current"]["Lessbytes"] == 0
    assert inbox["Current"]["LessbytesFile"] == "run0.txt"

    outbox = document["Directories"][1]
    assert outbox["Current"]["Count"] == 0
    assert outbox["Current"]["Morebytes"] is None

    assert (tmp_path / "errors.txt").read_text() == ""
