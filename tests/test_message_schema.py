"""
Contract tests for the wire schema.

If these fail, the listener and any other downstream consumer may break.
"""

import json

import pytest

from agent.model import (
    DeviceStarted,
    ProximityChanged,
    build_envelope,
    envelope_to_json,
)


def test_envelope_keys_exist() -> None:
    """
    Envelope and body keys are contract-critical
    """
    event = ProximityChanged(
        is_proximity_detected=True,
        reason="change",
        device_timestamp="2026-01-01T00:00:21+00:00",
    )

    envelope = build_envelope(event, device_id="catbell-porch", enqueued_at="2026-01-01T00:00:22+00:00")

    assert set(envelope.keys()) == {"body", "properties", "systemProperties"}
    assert set(envelope["body"].keys()) == {"deviceTimestamp", "messageType", "isProximityDetected", "reason"}
    assert envelope["properties"] == {"messageType": "ProximityInfo"}
    assert envelope["systemProperties"] == {
        "connectionDeviceId": "catbell-porch",
        "enqueuedTimeUtc": "2026-01-01T00:00:22+00:00",
    }


def test_device_started_has_no_proximity_flag() -> None:
    envelope = build_envelope(DeviceStarted(device_timestamp="2026-01-01T00:00:00+00:00"), device_id="d")

    assert "isProximityDetected" not in envelope["body"]
    assert envelope["body"]["messageType"] == "DeviceStarted"


def test_envelope_json_is_compact_and_sorted() -> None:
    envelope = build_envelope(
        DeviceStarted(device_timestamp="2026-01-01T00:00:00+00:00"),
        device_id="d",
        enqueued_at="2026-01-01T00:00:00+00:00",
    )

    line = envelope_to_json(envelope)

    assert " " not in line
    assert line.startswith('{"body":')
    assert json.loads(line) == envelope


@pytest.mark.parametrize(
    "event",
    [
        ProximityChanged(is_proximity_detected=True, reason="wiggle", device_timestamp="2026-01-01T00:00:00+00:00"),
        ProximityChanged(is_proximity_detected=True, reason="change", device_timestamp=""),
    ],
)
def test_invalid_events_are_rejected(event) -> None:
    with pytest.raises(ValueError):
        build_envelope(event, device_id="d")


def test_device_id_is_required() -> None:
    with pytest.raises(ValueError, match="device_id"):
        build_envelope(DeviceStarted(device_timestamp="2026-01-01T00:00:00+00:00"), device_id="")
