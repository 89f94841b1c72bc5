"""
Contract tests for the ingest consumer and the table store
"""

import json
from pathlib import Path

import pytest

from agent.errors import StorageInsertFailure
from listener.consumer import EventIngestConsumer, build_row
from listener.read import PartitionContext, ReceivedEvent, read_partition
from listener.store import SqliteTableStore

PARTITION = PartitionContext(partition_id="catbell-porch", path=Path("catbell-porch.jsonl"))


def _proximity(detected: bool = True, reason: str = "change") -> ReceivedEvent:
    return ReceivedEvent(
        body={
            "deviceTimestamp": "2026-01-01T00:00:21+00:00",
            "messageType": "ProximityInfo",
            "isProximityDetected": detected,
            "reason": reason,
        },
        properties={"messageType": "ProximityInfo"},
        system_properties={
            "connectionDeviceId": "catbell-porch",
            "enqueuedTimeUtc": "2026-01-01T00:00:22+00:00",
        },
    )


def _started() -> ReceivedEvent:
    return ReceivedEvent(
        body={"deviceTimestamp": "2026-01-01T00:00:00+00:00", "messageType": "DeviceStarted"},
        properties={"messageType": "DeviceStarted"},
        system_properties={"connectionDeviceId": "catbell-porch"},
    )


@pytest.fixture
def store(tmp_path: Path) -> SqliteTableStore:
    table = SqliteTableStore(tmp_path / "catbell.db", "proximity")
    table.create_table()
    return table


def test_row_shape() -> None:
    """
    RowKey combines ingest time, device time and a unique suffix
    """
    row = build_row(
        _proximity(),
        now_iso=lambda: "2026-01-01T00:00:23+00:00",
        unique_suffix=lambda: "3f2b",
    )

    assert row.partition_key == "catbell-porch"
    assert row.row_key == "2026-01-01T00:00:23+00:00-2026-01-01T00:00:21+00:00-3f2b"
    assert row.enqueue_time_utc == "2026-01-01T00:00:22+00:00"
    assert row.is_proximity_detected is True
    assert row.reason == "change"
    assert json.loads(row.body)["deviceTimestamp"] == "2026-01-01T00:00:21+00:00"
    assert json.loads(row.properties) == {"messageType": "ProximityInfo"}
    assert json.loads(row.system_properties)["connectionDeviceId"] == "catbell-porch"


def test_duplicate_delivery_gets_distinct_row_keys() -> None:
    first = build_row(_proximity(), now_iso=lambda: "2026-01-01T00:00:23+00:00")
    second = build_row(_proximity(), now_iso=lambda: "2026-01-01T00:00:23+00:00")

    assert first.row_key != second.row_key


def test_only_proximity_events_are_stored(store: SqliteTableStore) -> None:
    consumer = EventIngestConsumer(store)

    consumer.handle_events([_started(), _proximity(True), _proximity(False, "heartbeat")], PARTITION)

    assert consumer.stats.to_dict() == {"received": 3, "stored": 2, "ignored": 1}

    rows = store.list_entities("catbell-porch")
    assert sorted((r.is_proximity_detected, r.reason) for r in rows) == [(False, "heartbeat"), (True, "change")]


def test_insert_failure_propagates(store: SqliteTableStore, capsys) -> None:
    class BrokenStore:
        table_name = "proximity"

        def table_exists(self) -> bool:
            return True

        def insert_entity(self, row) -> None:
            raise StorageInsertFailure("disk full")

    consumer = EventIngestConsumer(BrokenStore())

    with pytest.raises(StorageInsertFailure, match="disk full"):
        consumer.handle_events([_proximity()], PARTITION)

    assert consumer.stats.stored == 0
    assert "storage_insert_failed" in capsys.readouterr().out


def test_duplicate_key_is_a_storage_failure(store: SqliteTableStore) -> None:
    row = build_row(_proximity(), unique_suffix=lambda: "same")
    store.insert_entity(row)

    with pytest.raises(StorageInsertFailure):
        store.insert_entity(row)


def test_table_name_must_be_an_identifier(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="invalid table name"):
        SqliteTableStore(tmp_path / "x.db", "proximity; DROP TABLE x")


def test_read_partition_skips_invalid_lines(tmp_path: Path) -> None:
    path = tmp_path / "catbell-porch.jsonl"
    path.write_text(
        "\n".join(
            [
                json.dumps({"body": {"messageType": "DeviceStarted"}, "properties": {"messageType": "DeviceStarted"}}),
                "{not json",
                json.dumps(["not", "an", "object"]),
                "",
                json.dumps({"properties": {}}),
            ]
        ),
        encoding="utf-8",
    )

    events, invalid = read_partition(path)

    assert len(events) == 1
    assert events[0].message_type == "DeviceStarted"
    assert invalid == 3
