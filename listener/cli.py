"""
listener.cli
AUTHOR: carter-vin

Telemetry listener: stream partitions -> table store
"""

from __future__ import annotations

from pathlib import Path

import json
import typer

from agent import config
from agent.config import require_setting
from agent.errors import ConfigurationMissing, StorageInsertFailure
from listener.consumer import EventIngestConsumer
from listener.logging import emit_event
from listener.read import batched, discover_partitions, read_partition
from listener.store import SqliteTableStore


app = typer.Typer(add_completion=False, help="catbell-listener: persist proximity events to a table")


def _open_store(storage_path: str | None, table: str) -> SqliteTableStore:
    try:
        path = require_setting(
            storage_path,
            setting="storage path",
            envvar=config.LISTENER_STORAGE_PATH_ENV,
        )
        return SqliteTableStore(Path(path), table)
    except ConfigurationMissing as e:
        emit_event("config_invalid", severity="ERROR", message=str(e))
        raise
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _storage_option():
    return typer.Option(
        None,
        "--storage-path",
        envvar=config.LISTENER_STORAGE_PATH_ENV,
        help="SQLite database file holding the table.",
    )


def _table_option():
    return typer.Option(
        config.DEFAULT_TABLE_NAME,
        "--table",
        envvar=config.LISTENER_TABLE_NAME_ENV,
        help="Table name.",
    )


@app.command("create-table")
def create_table(
    storage_path: str | None = _storage_option(),
    table: str = _table_option(),
) -> None:
    """
    Create the table if it does not exist
    """
    store = _open_store(storage_path, table)
    created = store.create_table()
    emit_event("table_created", table=store.table_name, created=created, storage_path=str(store.db_path))


@app.command("ingest")
def ingest(
    stream_dir: str | None = typer.Option(
        None,
        "--stream-dir",
        envvar=config.LISTENER_STREAM_DIR_ENV,
        help="Directory of JSONL partitions to consume.",
    ),
    glob: str = typer.Option(
        "*.jsonl",
        "--glob",
        help="Glob pattern for partition files.",
    ),
    storage_path: str | None = _storage_option(),
    table: str = _table_option(),
    batch_size: int = typer.Option(
        100,
        "--batch-size",
        help="Events handed to the consumer per call.",
        min=1,
    ),
) -> None:
    """
    Consume every partition and store its ProximityInfo events

    Failure semantics:
    - missing config or table: exits non-zero before reading anything
    - storage insert failure: logged, then raised (exits non-zero)
    """
    emit_event("listener_start", stream_dir=stream_dir, table=table)

    try:
        root = Path(
            require_setting(stream_dir, setting="stream directory", envvar=config.LISTENER_STREAM_DIR_ENV)
        )
    except ConfigurationMissing as e:
        emit_event("config_invalid", severity="ERROR", message=str(e))
        raise

    if not root.is_dir():
        error = ConfigurationMissing(
            "stream directory",
            config.LISTENER_STREAM_DIR_ENV,
            detail=f"{root} is not a directory",
        )
        emit_event("config_invalid", severity="ERROR", message=str(error))
        raise error

    store = _open_store(storage_path, table)

    if not store.table_exists():
        error = ConfigurationMissing(
            "table",
            config.LISTENER_TABLE_NAME_ENV,
            detail=f"the table {store.table_name} does not exist; create it before starting the listener",
        )
        emit_event("config_invalid", severity="ERROR", message=str(error))
        raise error
    emit_event("table_checked", table=store.table_name, exists=True)

    consumer = EventIngestConsumer(store)
    partitions = discover_partitions(root, glob)
    invalid_total = 0

    for partition in partitions:
        events, invalid = read_partition(partition.path)
        invalid_total += invalid
        emit_event(
            "partition_opened",
            partition_id=partition.partition_id,
            events=len(events),
            invalid_lines=invalid,
        )

        try:
            for batch in batched(events, batch_size):
                consumer.handle_events(batch, partition)
        except StorageInsertFailure as e:
            emit_event(
                "processing_error",
                severity="ERROR",
                partition_id=partition.partition_id,
                error_type=type(e).__name__,
                message=str(e),
            )
            raise

        emit_event("partition_done", partition_id=partition.partition_id)

    summary = {
        "partitions": len(partitions),
        "invalid_lines": invalid_total,
        **consumer.stats.to_dict(),
    }
    typer.echo(json.dumps(summary, sort_keys=True, separators=(",", ":")))


@app.command("rows")
def rows(
    storage_path: str | None = _storage_option(),
    table: str = _table_option(),
    device: str | None = typer.Option(
        None,
        "--device",
        help="Only rows for this device (PartitionKey).",
    ),
) -> None:
    """
    Print stored rows as JSON lines
    """
    store = _open_store(storage_path, table)
    if not store.table_exists():
        raise typer.BadParameter(f"table {store.table_name} does not exist")

    for row in store.list_entities(device):
        typer.echo(json.dumps(row.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False))


if __name__ == "__main__":
    app()
