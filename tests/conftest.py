"""
Shared fixtures: in-memory publishers and a wired device loop on a virtual clock
"""

from __future__ import annotations

import pytest

from agent.config import TimingSettings
from agent.errors import PublishFailure
from agent.main import build_device_loop
from agent.model import ProximityChanged
from agent.scheduler import ManualClock
from agent.sensors.scripted import ScriptedSampleReader


class RecordingPublisher:
    def __init__(self) -> None:
        self.messages = []

    def publish(self, message) -> None:
        self.messages.append(message)

    @property
    def proximity(self) -> list[tuple[bool, str]]:
        return [
            (m.is_proximity_detected, m.reason)
            for m in self.messages
            if isinstance(m, ProximityChanged)
        ]


class FailingPublisher:
    def __init__(self) -> None:
        self.attempts = 0

    def publish(self, message) -> None:
        self.attempts += 1
        raise PublishFailure("ingest endpoint unreachable")


@pytest.fixture
def recording_publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def failing_publisher() -> FailingPublisher:
    return FailingPublisher()


@pytest.fixture
def replay_loop():
    """
    Build a device loop over scripted samples and run it for exactly one
    poll tick per sample
    """

    def _run(samples, publisher, *, debounce_s: float = 20, heartbeat_s: float = 60, poll_ms: int = 100):
        timing = TimingSettings.from_options(poll_ms, debounce_s, heartbeat_s)
        clock = ManualClock()
        device = build_device_loop(ScriptedSampleReader(samples), publisher, clock, timing)
        device.loop.run(until_ms=(len(samples) - 1) * poll_ms)
        return device

    return _run
