"""
agent.model
AUTHOR: carter-vin

Event schema + deterministic serialization primitives.

Design goals:
- Explicit wire structure (no accidental serialization via __dict__)
- Body keys match what the ingestion side parses (camelCase)
- Envelope carries messageType as a routing property
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Union

import json

# Message types (routing property values)
PROXIMITY_INFO = "ProximityInfo"
DEVICE_STARTED = "DeviceStarted"
VALID_MESSAGE_TYPES = {PROXIMITY_INFO, DEVICE_STARTED}

# Reasons
REASON_CHANGE = "change"
REASON_HEARTBEAT = "heartbeat"
VALID_REASONS = {REASON_CHANGE, REASON_HEARTBEAT}


def utc_now_iso() -> str:
    """
    Current time in ISO 8601 (UTC)
    """
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RawSample:
    """
    Single instantaneous sensor reading
    - observed_at_ms: monotonic clock time of the read
    """

    value: bool
    observed_at_ms: int


@dataclass(frozen=True)
class ProximityChanged:
    """
    Domain event for a confirmed transition or a heartbeat
    """

    is_proximity_detected: bool
    reason: str
    device_timestamp: str

    message_type = PROXIMITY_INFO

    def to_body(self) -> dict[str, Any]:
        # Explicit key mapping for stability
        return {
            "deviceTimestamp": self.device_timestamp,
            "messageType": self.message_type,
            "isProximityDetected": self.is_proximity_detected,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class DeviceStarted:
    """
    Sent once when the agent comes up
    """

    device_timestamp: str

    message_type = DEVICE_STARTED

    def to_body(self) -> dict[str, Any]:
        return {
            "deviceTimestamp": self.device_timestamp,
            "messageType": self.message_type,
        }


OutboundMessage = Union[ProximityChanged, DeviceStarted]


def validate_message(message: OutboundMessage) -> None:
    """
    Validate message content

    Raises ValueError on invalid
    """
    if not message.device_timestamp:
        raise ValueError("device_timestamp is empty")

    if message.message_type not in VALID_MESSAGE_TYPES:
        raise ValueError(f"messageType must be: {sorted(VALID_MESSAGE_TYPES)}")

    if isinstance(message, ProximityChanged):
        if not isinstance(message.is_proximity_detected, bool):
            raise ValueError("is_proximity_detected must be a bool")
        if message.reason not in VALID_REASONS:
            raise ValueError(f"reason must be: {sorted(VALID_REASONS)}")


def build_envelope(
    message: OutboundMessage,
    *,
    device_id: str,
    enqueued_at: str | None = None,
) -> dict[str, Any]:
    """
    Wrap a message body with routing and system properties

    The listener partitions on systemProperties.connectionDeviceId and
    filters on properties.messageType.
    """
    validate_message(message)
    if not device_id:
        raise ValueError("device_id is empty")

    return {
        "body": message.to_body(),
        "properties": {"messageType": message.message_type},
        "systemProperties": {
            "connectionDeviceId": device_id,
            "enqueuedTimeUtc": enqueued_at or utc_now_iso(),
        },
    }


def envelope_to_json(envelope: dict[str, Any]) -> str:
    """
    Serialize an envelope

    Rules:
    - sort_keys=True ensures stable key order
    - separators remove whitespace to avoid formatting drift

    Output single JSON object string
    """
    return json.dumps(
        envelope,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
