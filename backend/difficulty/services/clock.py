"""Clocks and a cooperative scheduler for the periodic control loops.

Nothing here owns a thread. The host calls ``Scheduler.run_pending`` once per
game tick (the orchestrator does this inside ``process_game_update``); tests use
``ManualClock`` together with ``Scheduler.advance`` to move virtual time.
"""

from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from shared.config.logging import get_logger

logger = get_logger(__name__)


class Clock(Protocol):
    def now(self) -> float: ...


class MonotonicClock:
    """Seconds from ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Virtual clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def set(self, value: float) -> None:
        if value < self._now:
            raise ValueError(f"Clock cannot move backwards: {value} < {self._now}")
        self._now = value

    def advance(self, seconds: float) -> None:
        self.set(self._now + seconds)


@dataclass
class ScheduledTask:
    name: str
    interval: float
    callback: Callable[[], object]
    next_due: float
    cancelled: bool = False
    runs: int = 0

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(order=True)
class _QueueEntry:
    due: float
    seq: int
    task: ScheduledTask = field(compare=False)


class Scheduler:
    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._queue: list[_QueueEntry] = []
        self._seq = itertools.count()
        self._tasks: dict[str, ScheduledTask] = {}

    def every(self, interval: float, callback: Callable[[], object], name: str) -> ScheduledTask:
        """Run ``callback`` every ``interval`` seconds, first at now + interval.

        Registering a name again replaces the earlier task.
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        existing = self._tasks.get(name)
        if existing is not None:
            existing.cancel()

        task = ScheduledTask(
            name=name,
            interval=interval,
            callback=callback,
            next_due=self.clock.now() + interval,
        )
        self._tasks[name] = task
        heapq.heappush(self._queue, _QueueEntry(task.next_due, next(self._seq), task))
        logger.debug("[Scheduler] Task %s scheduled every %.1fs", name, interval)
        return task

    def cancel(self, name: str) -> None:
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        self._queue.clear()

    def task(self, name: str) -> ScheduledTask | None:
        return self._tasks.get(name)

    @property
    def task_names(self) -> list[str]:
        return sorted(self._tasks)

    def run_pending(self) -> int:
        """Fire every task due at the current clock time. Returns the run count."""
        return self._run_until(self.clock.now())

    def advance(self, seconds: float) -> int:
        """Move a ManualClock forward, firing tasks in due order along the way."""
        if not isinstance(self.clock, ManualClock):
            raise TypeError("advance() requires a ManualClock")
        target = self.clock.now() + seconds
        runs = 0
        while self._queue and self._queue[0].due <= target:
            entry = self._queue[0]
            if entry.due > self.clock.now():
                self.clock.set(entry.due)
            runs += self._run_until(entry.due)
        self.clock.set(target)
        return runs

    def _run_until(self, now: float) -> int:
        runs = 0
        while self._queue and self._queue[0].due <= now:
            entry = heapq.heappop(self._queue)
            task = entry.task
            if task.cancelled:
                continue
            try:
                task.callback()
            except Exception:
                logger.exception("[Scheduler] Task %s failed", task.name)
            task.runs += 1
            runs += 1
            task.next_due = entry.due + task.interval
            if task.next_due <= now:
                # Coalesce runs missed while the host loop was stalled.
                task.next_due = now + task.interval
            if not task.cancelled:
                heapq.heappush(self._queue, _QueueEntry(task.next_due, next(self._seq), task))
        return runs
