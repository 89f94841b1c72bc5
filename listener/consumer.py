"""
listener.consumer
AUTHOR: carter-vin

Forwards ProximityInfo events to the table store

Contract:
- only properties.messageType == "ProximityInfo" is stored; other types are counted and ignored
- PartitionKey = device identity
- RowKey = {utc_now_iso}-{deviceTimestamp}-{uuid4}, unique under clock skew and redelivery
- insert failures propagate (StorageInsertFailure), never retried here
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable

from agent.errors import StorageInsertFailure
from agent.model import PROXIMITY_INFO, utc_now_iso
from listener.logging import emit_event
from listener.read import PartitionContext, ReceivedEvent
from listener.store import ProximityRow, TableStore

UNKNOWN_DEVICE = "unknown"


@dataclass
class ConsumeStats:
    received: int = 0
    stored: int = 0
    ignored: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"received": self.received, "stored": self.stored, "ignored": self.ignored}


def _dumps(value: object) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def build_row(
    event: ReceivedEvent,
    *,
    now_iso: Callable[[], str] = utc_now_iso,
    unique_suffix: Callable[[], str] = lambda: str(uuid.uuid4()),
) -> ProximityRow:
    """
    Build the storage row for one proximity event
    """
    body = event.body
    device_id = event.system_properties.get("connectionDeviceId") or UNKNOWN_DEVICE

    detected = body.get("isProximityDetected")
    reason = body.get("reason")

    return ProximityRow(
        partition_key=str(device_id),
        row_key=f"{now_iso()}-{body.get('deviceTimestamp')}-{unique_suffix()}",
        enqueue_time_utc=event.enqueued_time_utc,
        is_proximity_detected=detected if isinstance(detected, bool) else None,
        reason=str(reason) if reason is not None else None,
        body=_dumps(body),
        properties=_dumps(event.properties),
        system_properties=_dumps(event.system_properties),
    )


class EventIngestConsumer:
    def __init__(self, store: TableStore) -> None:
        self.store = store
        self.stats = ConsumeStats()

    def handle_events(self, events: Iterable[ReceivedEvent], context: PartitionContext) -> None:
        """
        Process one batch from a partition, in order
        """
        for event in events:
            self.stats.received += 1

            if event.message_type != PROXIMITY_INFO:
                self.stats.ignored += 1
                emit_event(
                    "event_ignored",
                    severity="DEBUG",
                    partition_id=context.partition_id,
                    message_type=event.message_type,
                )
                continue

            row = build_row(event)
            emit_event(
                "proximity_event_received",
                partition_id=context.partition_id,
                event=event.body,
                storage_entity=row.to_dict(),
            )

            try:
                self.store.insert_entity(row)
            except StorageInsertFailure as e:
                emit_event(
                    "storage_insert_failed",
                    severity="ERROR",
                    partition_id=context.partition_id,
                    table=self.store.table_name,
                    error_type=type(e).__name__,
                    message=str(e),
                )
                raise

            self.stats.stored += 1
