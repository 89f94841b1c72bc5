"""
agent.debounce
AUTHOR: carter-vin

Turns noisy raw presence samples into confirmed rising/falling edges.

States:
- IDLE: last confirmed value = false
- ACTIVE: last confirmed value = true

Rules (per poll tick):
- first tick is a baseline: last_true_ms := start time, nothing can confirm
- true: refresh last_true_ms; confirm ACTIVE once the true run has held
  for at least the debounce window
- false: end the true run; confirm IDLE once at least the debounce window
  has passed since true was last seen
- read failures skip the tick, state unchanged
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from agent.config import AGENT_VERSION
from agent.logging import emit_event
from agent.model import RawSample
from agent.sensors.base import SampleReader, read_sample

IDLE = "IDLE"
ACTIVE = "ACTIVE"

# Subscribers receive (detected, now_ms)
TransitionHandler = Callable[[bool, int], None]


@dataclass
class DebouncedState:
    """
    Engine belief, mutated only by DebounceEngine
    - last_true_ms: last tick a true sample was seen; set by start(), so
      always an int once the engine is running
    - true_since_ms: first tick of the current uninterrupted true run
    - last_edge_ms: tick of the last confirmed transition
    """

    current_detected: bool = False
    last_edge_ms: int | None = None
    last_true_ms: int | None = None
    true_since_ms: int | None = None

    @property
    def name(self) -> str:
        return ACTIVE if self.current_detected else IDLE


class DebounceEngine:
    def __init__(self, reader: SampleReader, *, debounce_window_ms: int) -> None:
        if debounce_window_ms < 0:
            raise ValueError("debounce_window_ms must be >= 0")

        self.reader = reader
        self.debounce_window_ms = debounce_window_ms
        self.state = DebouncedState()
        self._subscribers: list[TransitionHandler] = []
        self._started_at_ms: int | None = None

    def subscribe(self, handler: TransitionHandler) -> None:
        self._subscribers.append(handler)

    @property
    def started(self) -> bool:
        return self._started_at_ms is not None

    def start(self, now_ms: int) -> None:
        """
        Neutral baseline: pretend true was last seen at start
        """
        self._started_at_ms = now_ms
        self.state = DebouncedState(last_true_ms=now_ms)

    def tick(self, now_ms: int) -> bool | None:
        """
        One poll tick

        Returns the confirmed value when this tick produced a transition,
        else None
        """
        outcome = read_sample(self.reader, now_ms)
        if not outcome.ok:
            emit_event(
                "sample_read_failed",
                agent_version=AGENT_VERSION,
                severity="ERROR",
                error_type=outcome.error_type,
                message=outcome.error_message,
                state=self.state.name,
            )
            return None

        if not self.started:
            self.start(now_ms)
            if outcome.sample.value:
                self.state.true_since_ms = now_ms
            return None

        return self.apply(outcome.sample)

    def apply(self, sample: RawSample) -> bool | None:
        state = self.state
        now = sample.observed_at_ms

        if sample.value:
            if state.true_since_ms is None:
                state.true_since_ms = now
            state.last_true_ms = now

            if not state.current_detected and now - state.true_since_ms >= self.debounce_window_ms:
                return self._confirm(True, now)
            return None

        state.true_since_ms = None
        if state.current_detected and now - state.last_true_ms >= self.debounce_window_ms:
            return self._confirm(False, now)
        return None

    def _confirm(self, detected: bool, now_ms: int) -> bool:
        self.state.current_detected = detected
        self.state.last_edge_ms = now_ms

        emit_event(
            "state_changed",
            agent_version=AGENT_VERSION,
            state=self.state.name,
            tick_ms=now_ms,
        )

        # Delivered in subscription order before the next tick
        for handler in self._subscribers:
            try:
                handler(detected, now_ms)
            except Exception as e:
                emit_event(
                    "subscriber_failed",
                    agent_version=AGENT_VERSION,
                    severity="ERROR",
                    subscriber=getattr(handler, "__name__", type(handler).__name__),
                    error_type=type(e).__name__,
                    message=str(e),
                )
        return detected
