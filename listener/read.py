"""
listener.read
AUTHOR: carter-vin

Stream reader: a directory of JSONL spool files, one file per partition
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import json


@dataclass(frozen=True)
class ReceivedEvent:
    """
    One delivered envelope
    - body: message body (dict)
    - properties: routing properties (messageType)
    - system_properties: delivery metadata (connectionDeviceId, enqueuedTimeUtc)
    """

    body: dict[str, Any]
    properties: dict[str, Any] = field(default_factory=dict)
    system_properties: dict[str, Any] = field(default_factory=dict)

    @property
    def message_type(self) -> str | None:
        value = self.properties.get("messageType")
        return str(value) if value is not None else None

    @property
    def enqueued_time_utc(self) -> str | None:
        value = self.system_properties.get("enqueuedTimeUtc")
        return str(value) if value is not None else None


@dataclass(frozen=True)
class PartitionContext:
    partition_id: str
    path: Path


def _parse_json_line(line: str) -> dict[str, object] | None:
    """
    Parse a single JSONL line into a dict or return None if invalid
    """
    line = line.strip()
    if not line:
        return None
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def envelope_to_event(payload: dict[str, object]) -> ReceivedEvent | None:
    """
    Map an envelope dict to a ReceivedEvent, None if the shape is wrong
    """
    body = payload.get("body")
    properties = payload.get("properties", {})
    system_properties = payload.get("systemProperties", {})

    if not isinstance(body, dict):
        return None
    if not isinstance(properties, dict) or not isinstance(system_properties, dict):
        return None

    return ReceivedEvent(body=body, properties=properties, system_properties=system_properties)


def read_partition(path: Path) -> tuple[list[ReceivedEvent], int]:
    """
    Read all events of one partition file, in file order

    Returns:
    - list of events
    - count of invalid non-empty lines
    """
    # Missing partition means nothing delivered yet
    if not path.exists():
        return [], 0

    events: list[ReceivedEvent] = []
    invalid = 0
    with path.open(encoding="utf-8", errors="replace") as handle:
        for line in handle:
            payload = _parse_json_line(line)
            event = envelope_to_event(payload) if payload is not None else None
            if event is None:
                if line.strip():
                    invalid += 1
                continue
            events.append(event)

    return events, invalid


def discover_partitions(stream_dir: Path, glob: str = "*.jsonl") -> list[PartitionContext]:
    """
    Partitions in deterministic (sorted) order
    """
    return [
        PartitionContext(partition_id=path.stem, path=path)
        for path in sorted(stream_dir.glob(glob))
        if path.is_file()
    ]


def batched(events: list[ReceivedEvent], size: int) -> Iterator[list[ReceivedEvent]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for start in range(0, len(events), size):
        yield events[start : start + size]
