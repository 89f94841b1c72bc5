"""
agent.heartbeat

AUTHOR: carter-vin

Liveness for the backend when nothing moves
- fires on its own fixed-interval timer
- sends the last sent value again with reason "heartbeat" once the
  heartbeat window has passed without any send
- real transitions reset the window (they update the same tracker)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from agent.config import AGENT_VERSION
from agent.logging import emit_event
from agent.model import REASON_HEARTBEAT


@dataclass
class LivenessTracker:
    last_sent_value: bool
    last_sent_ms: int

    def record(self, value: bool, now_ms: int) -> None:
        self.last_sent_value = value
        self.last_sent_ms = now_ms


class ProximitySink(Protocol):
    tracker: LivenessTracker

    def send_proximity(self, detected: bool, reason: str, now_ms: int) -> bool: ...


class HeartbeatScheduler:
    def __init__(self, sink: ProximitySink, *, heartbeat_window_ms: int) -> None:
        if heartbeat_window_ms < 1:
            raise ValueError("heartbeat_window_ms must be > 0")
        self.sink = sink
        self.heartbeat_window_ms = heartbeat_window_ms

    def fire(self, now_ms: int) -> bool:
        """
        Timer callback

        Returns True when a heartbeat was sent
        """
        tracker = self.sink.tracker
        elapsed = now_ms - tracker.last_sent_ms

        if elapsed < self.heartbeat_window_ms:
            emit_event(
                "heartbeat_skipped",
                agent_version=AGENT_VERSION,
                severity="DEBUG",
                elapsed_ms=elapsed,
                window_ms=self.heartbeat_window_ms,
            )
            return False

        self.sink.send_proximity(tracker.last_sent_value, REASON_HEARTBEAT, now_ms)
        return True
