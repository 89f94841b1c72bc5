"""
agent.scheduler
AUTHOR: carter-vin

Single-threaded cooperative tick scheduler

Contract:
- Interval tasks run in registration order when due at the same instant
- A slow handler delays the next tick; missed ticks are not replayed in a burst
- No cancellation: the loop runs until the process exits (or until_ms in tests)

Clocks:
- SystemClock: time.monotonic + time.sleep
- ManualClock: virtual time, sleep advances the clock (deterministic tests/replays)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Protocol


class Clock(Protocol):
    def now_ms(self) -> int: ...

    def sleep_ms(self, duration_ms: int) -> None: ...


class SystemClock:
    def now_ms(self) -> int:
        return time.monotonic_ns() // 1_000_000

    def sleep_ms(self, duration_ms: int) -> None:
        if duration_ms > 0:
            time.sleep(duration_ms / 1000.0)


class ManualClock:
    def __init__(self, start_ms: int = 0) -> None:
        self._now_ms = start_ms

    def now_ms(self) -> int:
        return self._now_ms

    def sleep_ms(self, duration_ms: int) -> None:
        self.advance(duration_ms)

    def advance(self, duration_ms: int) -> None:
        if duration_ms < 0:
            raise ValueError("cannot move a clock backwards")
        self._now_ms += duration_ms


@dataclass
class IntervalTask:
    name: str
    interval_ms: int
    handler: Callable[[int], None]
    next_due_ms: int
    runs: int = 0


class CooperativeLoop:
    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._tasks: list[IntervalTask] = []

    @property
    def tasks(self) -> list[IntervalTask]:
        return list(self._tasks)

    def every(
        self,
        name: str,
        interval_ms: int,
        handler: Callable[[int], None],
        *,
        first_run_ms: int | None = None,
    ) -> IntervalTask:
        """
        Register a handler(now_ms) to run every interval_ms

        first_run_ms defaults to one interval from now
        """
        if interval_ms < 1:
            raise ValueError("interval_ms must be >= 1")

        if first_run_ms is None:
            first_run_ms = self.clock.now_ms() + interval_ms

        task = IntervalTask(
            name=name,
            interval_ms=interval_ms,
            handler=handler,
            next_due_ms=first_run_ms,
        )
        self._tasks.append(task)
        return task

    def next_due_ms(self) -> int | None:
        if not self._tasks:
            return None
        return min(task.next_due_ms for task in self._tasks)

    def run_pending(self) -> int:
        """
        Run every task due at or before now, in registration order

        Returns number of handler invocations
        """
        now = self.clock.now_ms()
        ran = 0
        for task in self._tasks:
            if task.next_due_ms > now:
                continue

            task.handler(now)
            task.runs += 1
            ran += 1

            # Keep the fixed cadence; skip slots a slow handler overran
            task.next_due_ms += task.interval_ms
            after = self.clock.now_ms()
            if task.next_due_ms <= after - task.interval_ms:
                missed = (after - task.next_due_ms) // task.interval_ms
                task.next_due_ms += missed * task.interval_ms
        return ran

    def run(self, *, until_ms: int | None = None) -> None:
        """
        Run the loop

        until_ms bounds the loop (inclusive) for replays and tests;
        None runs for the process lifetime.
        """
        while True:
            due = self.next_due_ms()
            if due is None:
                return
            if until_ms is not None and due > until_ms:
                return

            wait = due - self.clock.now_ms()
            if wait > 0:
                self.clock.sleep_ms(wait)

            self.run_pending()
