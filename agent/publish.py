"""
agent.publish

AUTHOR: carter-vin

OUTPUT:
- SpoolPublisher: JSON Lines spool file, one envelope per line, append-only
- HttpPublisher: one POST per envelope to an ingestion endpoint

Design goals:
- Create spool directory if missing
- Flush per write so tail/ingest can see updates immediately
- Explicit error surfaces: every failure becomes PublishFailure
- No retries; this is a best-effort telemetry path
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import httpx

from agent.config import AGENT_VERSION, DEFAULT_SPOOL_PATH, DEFAULT_SPOOL_ROTATE_COUNT
from agent.errors import PublishFailure
from agent.heartbeat import LivenessTracker
from agent.logging import emit_event
from agent.model import (
    DeviceStarted,
    REASON_CHANGE,
    OutboundMessage,
    ProximityChanged,
    build_envelope,
    envelope_to_json,
    utc_now_iso,
)


class Publisher(Protocol):
    def publish(self, message: OutboundMessage) -> None: ...


@dataclass(frozen=True)
class SpoolTargets:
    """
    Spool destination configuration.
    """

    spool_path: Path = DEFAULT_SPOOL_PATH
    emit_stdout: bool = False
    spool_max_bytes: int | None = None
    spool_rotate_count: int = DEFAULT_SPOOL_ROTATE_COUNT


def _rotation_path(spool_path: Path, index: int) -> Path:
    """
    Build rotation path with numeric suffix
    """
    return spool_path.with_name(f"{spool_path.stem}.{index}{spool_path.suffix}")


def maybe_rotate_spool(targets: SpoolTargets) -> dict[str, Any] | None:
    """
    Rotate spool file when it exceeds max size

    Returns rotation info when a rotation happened
    """
    if targets.spool_max_bytes is None or targets.spool_max_bytes <= 0:
        return None

    if targets.spool_rotate_count < 1:
        return None

    if not targets.spool_path.exists():
        return None

    prior_size = targets.spool_path.stat().st_size
    if prior_size < targets.spool_max_bytes:
        return None

    # Rotate oldest first to keep shifts deterministic
    for index in range(targets.spool_rotate_count, 1, -1):
        src = _rotation_path(targets.spool_path, index - 1)
        dst = _rotation_path(targets.spool_path, index)
        if dst.exists():
            dst.unlink()
        if src.exists():
            src.rename(dst)

    first = _rotation_path(targets.spool_path, 1)
    if first.exists():
        first.unlink()
    targets.spool_path.rename(first)

    return {"rotated_to": str(first), "prior_size_bytes": prior_size}


def append_jsonl_line(spool_path: Path, line: str) -> None:
    """
    Append a single JSON string as one JSONL line.

    Contract:
    - 'line' must already be valid JSON (single object)
    - this function adds exactly one trailing newline
    """
    spool_path.parent.mkdir(parents=True, exist_ok=True)

    # Open in append mode; create if missing
    with spool_path.open(mode="a", encoding="utf-8", newline="\n") as f:
        f.write(line)
        f.write("\n")
        f.flush()


class SpoolPublisher:
    def __init__(self, targets: SpoolTargets, *, device_id: str) -> None:
        self.targets = targets
        self.device_id = device_id

    def publish(self, message: OutboundMessage) -> None:
        line = envelope_to_json(build_envelope(message, device_id=self.device_id))

        if self.targets.emit_stdout:
            # Stdout emission is primarily for local debugging and demos
            print(line)

        try:
            rotation = maybe_rotate_spool(self.targets)
            append_jsonl_line(self.targets.spool_path, line)
        except OSError as e:
            raise PublishFailure(f"spool write failed: {self.targets.spool_path}: {e}") from e

        if rotation is not None:
            emit_event("spool_rotated", agent_version=AGENT_VERSION, **rotation)


class HttpPublisher:
    def __init__(
        self,
        url: str,
        *,
        device_id: str,
        timeout_s: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.url = url
        self.device_id = device_id
        self._client = client or httpx.Client(timeout=timeout_s)

    def publish(self, message: OutboundMessage) -> None:
        envelope = build_envelope(message, device_id=self.device_id)
        try:
            response = self._client.post(self.url, json=envelope)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PublishFailure(f"ingest endpoint returned {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise PublishFailure(f"ingest request failed: {e}") from e

    def close(self) -> None:
        self._client.close()


class OutboundChannel:
    """
    Single sequencing point for everything the device sends.

    Both the debounce subscriber and the heartbeat timer call into this,
    and it is the only writer of the LivenessTracker.
    """

    def __init__(
        self,
        publisher: Publisher,
        tracker: LivenessTracker,
        *,
        wall_clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.publisher = publisher
        self.tracker = tracker
        self.wall_clock = wall_clock
        self.sent: int = 0
        self.failed: int = 0

    def send_proximity(self, detected: bool, reason: str, now_ms: int) -> bool:
        event = ProximityChanged(
            is_proximity_detected=detected,
            reason=reason,
            device_timestamp=self.wall_clock(),
        )
        ok = self._publish(event)

        # Optimistic even on failure: a dead link must not cause a heartbeat storm
        self.tracker.record(detected, now_ms)
        return ok

    def send_device_started(self) -> bool:
        return self._publish(DeviceStarted(device_timestamp=self.wall_clock()))

    def on_transition(self, detected: bool, now_ms: int) -> None:
        """
        DebounceEngine subscriber
        """
        self.send_proximity(detected, REASON_CHANGE, now_ms)

    def _publish(self, message: OutboundMessage) -> bool:
        body = message.to_body()
        try:
            self.publisher.publish(message)
        except PublishFailure as e:
            self.failed += 1
            emit_event(
                "publish_failed",
                agent_version=AGENT_VERSION,
                severity="ERROR",
                data=body,
                error_type=type(e).__name__,
                message=str(e),
            )
            return False

        self.sent += 1
        emit_event("event_published", agent_version=AGENT_VERSION, data=body)
        return True
