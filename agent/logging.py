"""
agent.logging
AUTHOR: carter-vin

Structured event logging for ops ingestion

Contract:
- One CSV row per line to stdout: timestamp,severity,json
- Stable event vocabulary (allowlist)
- UTC timestamps only
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import Any

# Event types
VALID_EVENT_TYPES = {
    "agent_start",
    "agent_shutdown",
    "sample_read_failed",
    "state_changed",
    "subscriber_failed",
    "heartbeat_skipped",
    "event_published",
    "publish_failed",
    "spool_rotated",
    "config_invalid",
}

VALID_SEVERITIES = ("DEBUG", "INFO", "WARNING", "ERROR")


def _truncate_message(value: str, *, limit: int = 200) -> str:
    """
    Cap message length to keep events compact
    """
    if len(value) <= limit:
        return value
    return value[:limit] + f"...[truncated {len(value) - limit} chars]"


# Time: current in UTC ISO 8601
def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_log_line(severity: str, payload: dict[str, Any], *, timestamp: str | None = None) -> str:
    """
    Render one log row as timestamp,severity,json

    csv quoting keeps the JSON column intact for spreadsheet and awk readers
    """
    if severity not in VALID_SEVERITIES:
        raise ValueError(f"invalid severity: {severity}")

    payload_json = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="")
    writer.writerow([timestamp or utc_now_iso(), severity, payload_json])
    return buffer.getvalue()


def emit_event(
    event_type: str,
    *,
    agent_version: str,
    severity: str = "INFO",
    **fields: Any,
) -> None:
    """
    Emit structured event line to stdout

    Rules:
    - event_type in VALID_EVENT_TYPES
    - event_type, agent_version always present in the JSON column
    - sort_keys + compact separators for format
    """
    if event_type not in VALID_EVENT_TYPES:
        raise ValueError(f"invalid event_type: {event_type}")

    if "message" in fields and isinstance(fields["message"], str):
        # Avoid emitting long strings in event fields
        fields["message"] = _truncate_message(fields["message"])

    payload: dict[str, Any] = {
        "event_type": event_type,
        "agent_version": agent_version,
        **fields,
    }

    print(format_log_line(severity, payload), flush=True)
