"""
listener.store
AUTHOR: carter-vin

Table store for proximity rows (SQLite)

Shape:
- one table per store name, keyed by (PartitionKey, RowKey)
- columns mirror the row built by listener.consumer
- the table must exist before ingest starts; create-table makes it
"""

from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Protocol

from agent.errors import StorageInsertFailure

_TABLE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,62}$")


@dataclass(frozen=True)
class ProximityRow:
    partition_key: str
    row_key: str
    enqueue_time_utc: str | None
    is_proximity_detected: bool | None
    reason: str | None
    body: str
    properties: str
    system_properties: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "PartitionKey": self.partition_key,
            "RowKey": self.row_key,
            "enqueueTimeUtc": self.enqueue_time_utc,
            "isProximityDetected": self.is_proximity_detected,
            "reason": self.reason,
            "body": self.body,
            "properties": self.properties,
            "systemProperties": self.system_properties,
        }


class TableStore(Protocol):
    table_name: str

    def table_exists(self) -> bool: ...

    def insert_entity(self, row: ProximityRow) -> None: ...


def validate_table_name(name: str) -> str:
    """
    Table names end up in SQL text, so keep them to identifiers
    """
    if not _TABLE_NAME_RE.match(name):
        raise ValueError(f"invalid table name: {name!r}")
    return name


class SqliteTableStore:
    """
    SQLite-backed table store.

    A connection is opened per operation and closed before it returns.
    """

    def __init__(self, db_path: Path, table_name: str) -> None:
        self.db_path = db_path
        self.table_name = validate_table_name(table_name)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def table_exists(self) -> bool:
        if not self.db_path.exists():
            return False
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                (self.table_name,),
            ).fetchone()
        return row is not None

    def create_table(self) -> bool:
        """
        Create the table if missing

        Returns True when it was created by this call
        """
        existed = self.table_exists()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._get_connection() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    PartitionKey TEXT NOT NULL,
                    RowKey TEXT NOT NULL,
                    enqueueTimeUtc TEXT,
                    isProximityDetected INTEGER,
                    reason TEXT,
                    body TEXT NOT NULL,
                    properties TEXT NOT NULL,
                    systemProperties TEXT NOT NULL,
                    PRIMARY KEY (PartitionKey, RowKey)
                )
                """
            )
        return not existed

    def insert_entity(self, row: ProximityRow) -> None:
        """
        Insert one row

        Failure semantics:
        - any sqlite error (including a duplicate key) raises StorageInsertFailure
        - no retry here; the caller decides
        """
        detected = None if row.is_proximity_detected is None else int(row.is_proximity_detected)
        try:
            with self._get_connection() as conn:
                conn.execute(
                    f"""
                    INSERT INTO {self.table_name} (
                        PartitionKey, RowKey, enqueueTimeUtc, isProximityDetected,
                        reason, body, properties, systemProperties
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        row.partition_key,
                        row.row_key,
                        row.enqueue_time_utc,
                        detected,
                        row.reason,
                        row.body,
                        row.properties,
                        row.system_properties,
                    ),
                )
        except sqlite3.Error as e:
            raise StorageInsertFailure(
                f"insert into {self.table_name} failed for {row.partition_key}/{row.row_key}: {e}"
            ) from e

    def list_entities(self, partition_key: str | None = None) -> list[ProximityRow]:
        query = f"SELECT * FROM {self.table_name}"
        params: tuple[Any, ...] = ()
        if partition_key is not None:
            query += " WHERE PartitionKey = ?"
            params = (partition_key,)
        query += " ORDER BY PartitionKey, RowKey"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            ProximityRow(
                partition_key=r["PartitionKey"],
                row_key=r["RowKey"],
                enqueue_time_utc=r["enqueueTimeUtc"],
                is_proximity_detected=None if r["isProximityDetected"] is None else bool(r["isProximityDetected"]),
                reason=r["reason"],
                body=r["body"],
                properties=r["properties"],
                system_properties=r["systemProperties"],
            )
            for r in rows
        ]
