"""
listener.logging
AUTHOR: carter-vin

Listener event vocabulary; same line format as the agent (timestamp,severity,json)
"""

from __future__ import annotations

from typing import Any

from agent.logging import _truncate_message, format_log_line

LISTENER_VERSION = "0.1.0"

VALID_EVENT_TYPES = {
    "listener_start",
    "table_checked",
    "table_created",
    "partition_opened",
    "proximity_event_received",
    "event_ignored",
    "partition_done",
    "storage_insert_failed",
    "processing_error",
    "config_invalid",
}


def emit_event(event_type: str, *, severity: str = "INFO", **fields: Any) -> None:
    """
    Emit structured listener event line to stdout

    Unknown event types raise ValueError
    """
    if event_type not in VALID_EVENT_TYPES:
        raise ValueError(f"invalid event_type: {event_type}")

    if "message" in fields and isinstance(fields["message"], str):
        fields["message"] = _truncate_message(fields["message"])

    payload: dict[str, Any] = {
        "event_type": event_type,
        "listener_version": LISTENER_VERSION,
        **fields,
    }
    print(format_log_line(severity, payload), flush=True)
