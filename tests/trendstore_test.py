from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from trend_watcher.trendmodel import Accumulation
from trend_watcher.trendmodel import Directories
from trend_watcher.trendmodel import Directory
from trend_watcher.trendmodel import Stat
from trend_watcher.trendstore import SNAPSHOT_VERSION
from trend_watcher.trendstore import SnapshotError
from trend_watcher.trendstore import TrendStore
from trend_watcher.trendstore import dumps
from trend_watcher.trendstore import loads
from trend_watcher.trendstore import parse

SOURCE = "/data/queues/inbox/;/data/queues/outbox/"

FULL_STAT = Stat(
    count=3,
    smallest_size=0,
    smallest_owner="empty.txt",
    largest_size=2**45,
    largest_owner="huge.bin",
    youngest_age=5,
    youngest_owner="new.txt",
    oldest_age=86400 * 400,
    oldest_owner="ancient.txt",
)

ONE_FILE = Stat(
    count=1,
    smallest_size=4,
    smallest_owner="a.txt",
    largest_size=4,
    largest_owner="a.txt",
    youngest_age=10,
    youngest_owner="a.txt",
    oldest_age=10,
    oldest_owner="a.txt",
)

ONE_FILE_DOCUMENT = {
    "Count": 1,
    "Lessbytes": 4,
    "Morebytes": 4,
    "Lesssecs": 10,
    "Moresecs": 10,
}


@pytest.fixture
def directories() -> Directories:
    collection = Directories(source=SOURCE)
    collection.add(
        Directory(
            path="/data/queues/inbox",
            base="/data/queues/",
            current=FULL_STAT,
            history=[Stat(), ONE_FILE],
        )
    )
    collection.add(Directory(path="/data/queues/outbox", base="/data/queues/"))
    collection.add(
        Directory(
            path="/data/queues/inbox/sub",
            base="/data/queues/",
            mode=Accumulation.TREE,
            current=Stat(
                count=2,
                smallest_size=30,
                largest_size=30,
                youngest_age=60,
                youngest_owner="c.txt",
                oldest_age=120,
                oldest_owner="d.txt",
            ),
        )
    )
    return collection


def document(**overrides: Any) -> bytes:
    base: dict[str, Any] = {
        "Version": SNAPSHOT_VERSION,
        "Src": SOURCE,
        "Directories": [
            {
                "Path": "/data/queues/inbox",
                "Base": "/data/queues/",
                "Mode": "file",
                "Current": {"Count": 0},
                "Histories": [],
            }
        ],
    }
    base.update(overrides)
    return json.dumps(base).encode()


def test_round_trip(directories: Directories) -> None:
    assert loads(dumps(directories), SOURCE) == directories


def test_round_trip_empty_collection() -> None:
    empty = Directories(source="")

    assert loads(dumps(empty), "") == empty


def test_dumps_layout(directories: Directories) -> None:
    result = json.loads(dumps(directories))

    assert result["Version"] == SNAPSHOT_VERSION
    assert result["Src"] == SOURCE
    assert [item["Path"] for item in result["Directories"]] == [
        "/data/queues/inbox",
        "/data/queues/inbox/sub",
        "/data/queues/outbox",
    ]
    outbox = result["Directories"][2]
    assert outbox["Histories"] == []
    assert outbox["Mode"] == "file"
    assert outbox["Current"] == {
        "Count": 0,
        "Lessbytes": None,
        "LessbytesFile": None,
        "Morebytes": None,
        "MorebytesFile": None,
        "Lesssecs": None,
        "LesssecsFile": None,
        "Moresecs": None,
        "MoresecsFile": None,
    }
    assert result["Directories"][0]["Current"]["Morebytes"] == 2**45


def test_loads_source_compare_ignores_case(directories: Directories) -> None:
    result = loads(dumps(directories), SOURCE.upper())

    assert result is not None
    assert len(result) == 3


def test_loads_rejects_different_source(directories: Directories) -> None:
    assert loads(dumps(directories), "/data/queues/other/") is None


def test_loads_without_source_accepts_any(directories: Directories) -> None:
    result = loads(dumps(directories))

    assert result is not None
    assert result.source == SOURCE


def huge_count_document() -> bytes:
    # Longer than the interpreter's integer string conversion limit
    count = b"1" + b"0" * 5000
    return (
        b'{"Version": 2, "Src": "' + SOURCE.encode() + b'", "Directories": '
        b'[{"Path": "/d", "Current": {"Count": ' + count + b'}, "Histories": []}]}'
    )


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"{not json",
        b"\xff\xfe",
        b"[]",
        pytest.param(b"[" * 200000, id="deeply-nested"),
        pytest.param(huge_count_document(), id="huge-count"),
        document(Version=1),
        document(Version=None),
        document(Src=None),
        document(Directories={"/data": {}}),
        document(Directories=[{"Path": "", "Current": {"Count": 0}, "Histories": []}]),
        document(Directories=[{"Path": "/d", "Current": {"Count": -1}, "Histories": []}]),
        document(Directories=[{"Path": "/d", "Current": {"Count": True}, "Histories": []}]),
        document(Directories=[{"Path": "/d", "Current": ONE_FILE_DOCUMENT}]),
        document(Directories=[{"Path": "/d", "Current": None, "Histories": []}]),
        document(
            Directories=[
                {
                    "Path": "/d",
                    "Current": {**ONE_FILE_DOCUMENT, "Lessbytes": "1"},
                    "Histories": [],
                }
            ]
        ),
        document(
            Directories=[
                {
                    "Path": "/d",
                    "Mode": "flat",
                    "Current": ONE_FILE_DOCUMENT,
                    "Histories": [],
                }
            ]
        ),
    ],
)
def test_loads_rejects_malformed(data: bytes) -> None:
    assert loads(data, SOURCE) is None


def test_store_read_deeply_nested_file(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_bytes(b"[" * 200000)

    assert TrendStore(str(path)).read(SOURCE) is None


@pytest.mark.parametrize(
    "stat",
    [
        {"Count": 3},
        {**ONE_FILE_DOCUMENT, "Lesssecs": None},
        {**ONE_FILE_DOCUMENT, "Morebytes": None},
        {"Count": 0, "Lessbytes": 4},
        {"Count": 0, "MoresecsFile": "a.txt"},
    ],
)
def test_loads_rejects_count_inconsistent_with_extremes(stat: dict[str, Any]) -> None:
    data = document(
        Directories=[{"Path": "/d", "Current": {"Count": 0}, "Histories": [stat]}]
    )

    with pytest.raises(SnapshotError):
        parse(data, SOURCE)
    assert loads(data, SOURCE) is None


def test_loads_accepts_tree_stat_without_size_owners() -> None:
    data = document(
        Directories=[
            {"Path": "/d", "Mode": "tree", "Current": ONE_FILE_DOCUMENT, "Histories": []}
        ]
    )

    result = loads(data, SOURCE)

    assert result is not None
    directory = result.get("/d")
    assert directory is not None
    assert directory.current.largest_size == 4
    assert directory.current.largest_owner is None


def test_loads_rejects_partially_valid_document() -> None:
    data = document(
        Directories=[
            {"Path": "/good", "Current": ONE_FILE_DOCUMENT, "Histories": []},
            {"Path": "/bad", "Current": {"Count": "1"}, "Histories": []},
        ]
    )

    assert loads(data, SOURCE) is None


def test_parse_raises_snapshot_error() -> None:
    with pytest.raises(SnapshotError, match="Different Src"):
        parse(document(), "/elsewhere/")


def test_parse_defaults_optional_fields() -> None:
    data = document(Directories=[{"Path": "/d", "Current": {"Count": 0}, "Histories": []}])

    result = parse(data, SOURCE)

    directory = result.get("/d")
    assert directory is not None
    assert directory.base == ""
    assert directory.mode is Accumulation.FILE
    assert directory.current == Stat()


def test_parse_duplicate_paths_overwrite() -> None:
    data = document(
        Directories=[
            {"Path": "/d", "Current": {"Count": 0}, "Histories": []},
            {"Path": "/d/", "Current": ONE_FILE_DOCUMENT, "Histories": []},
        ]
    )

    result = parse(data, SOURCE)

    assert len(result) == 1
    assert result.sorted()[0].current.count == 1


def test_store_from_config() -> None:
    assert TrendStore.from_config(MagicMock(snapshot_path="")) is None

    store = TrendStore.from_config(MagicMock(snapshot_path="snapshot.json"))

    assert store is not None
    assert store.path == "snapshot.json"


def test_store_write_then_read(tmp_path: Path, directories: Directories) -> None:
    store = TrendStore(str(tmp_path / "snapshot.json"))

    store.write(directories)

    assert store.read(SOURCE) == directories
    assert store.read("/other/") is None


def test_store_read_missing_file(tmp_path: Path) -> None:
    store = TrendStore(str(tmp_path / "missing.json"))

    assert store.read(SOURCE) is None


def test_store_read_malformed_file(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_text("{")
    store = TrendStore(str(path))

    assert store.read(SOURCE) is None


def test_store_write_unwritable_raises(tmp_path: Path, directories: Directories) -> None:
    store = TrendStore(str(tmp_path / "missing" / "snapshot.json"))

    with pytest.raises(OSError):
        store.write(directories)
