"""Generic table-driven polling worker for scheduled background tasks"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

from billing_engine.config import settings
from billing_engine.infrastructure.observability.logging import log_task_run
from billing_engine.infrastructure.observability.metrics import task_run_counter, worker_iteration_failures_counter
from billing_engine.services.gate import IdempotentTaskGate
from billing_engine.utils.date_utils import is_last_day_of_month, to_local, utc_now

logger = logging.getLogger(__name__)

Trigger = Callable[[datetime], bool]
Handler = Callable[[], Any]


@dataclass
class ScheduledTask:
    """Row of a worker's dispatch table"""

    key: str
    trigger: Trigger
    handler: Handler
    gated: bool = True  # At most once per local calendar day


def within_hour(hour: int, weekday: Optional[int] = None, window_minutes: int = 59) -> Trigger:
    """
    Matches local times in [hour:00, hour:00 + window_minutes), optionally on one weekday.

    weekday follows datetime.weekday(): Monday=0 ... Sunday=6.
    """

    def trigger(now: datetime) -> bool:
        if weekday is not None and now.weekday() != weekday:
            return False
        minutes = (now.hour - hour) * 60 + now.minute
        return 0 <= minutes < window_minutes

    return trigger


def last_day_of_month(hour: int, window_minutes: int = 59) -> Trigger:
    in_window = within_hour(hour, window_minutes=window_minutes)
    return lambda now: is_last_day_of_month(now.date()) and in_window(now)


def always() -> Trigger:
    return lambda now: True


class PollingWorker:
    """
    Runs a dispatch table until stopped.

    Each iteration reads the clock fresh, converts it to local time and runs,
    in table order, every task whose trigger matches and whose gate key has
    not run today. A task is marked as ran only after its handler returns,
    so a failed handler is retried on a later tick. Any exception ends the
    iteration, gets logged and is followed by the shorter error backoff.

    Sleeps wait on the stop event, so stop() takes effect immediately.
    """

    def __init__(
        self,
        name: str,
        tasks: Sequence[ScheduledTask],
        gate: IdempotentTaskGate | None = None,
        interval_seconds: float | None = None,
        next_wakeup: Callable[[datetime], datetime] | None = None,
        error_backoff_seconds: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.name = name
        self.tasks = list(tasks)
        self.gate = gate or IdempotentTaskGate(clock=clock)
        self.interval_seconds = settings.worker_interval_seconds if interval_seconds is None else interval_seconds
        self.next_wakeup = next_wakeup
        self.error_backoff_seconds = (
            settings.worker_error_backoff_seconds if error_backoff_seconds is None else error_backoff_seconds
        )
        self.clock = clock
        self._stop = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    async def run(self) -> None:
        logger.info(f"Worker {self.name} started", extra={"worker": self.name, "tasks": [t.key for t in self.tasks]})
        try:
            while not self._stop.is_set():
                try:
                    now = to_local(self.clock())
                    await self.tick(now)
                    delay = self._seconds_until_next(now)
                except Exception:
                    worker_iteration_failures_counter.labels(worker=self.name).inc()
                    logger.exception(f"Error in worker {self.name} loop", extra={"worker": self.name})
                    delay = self.error_backoff_seconds

                if self._stop.is_set():
                    break
                await self._sleep(delay)
        except asyncio.CancelledError:
            logger.info(f"Worker {self.name} cancelled", extra={"worker": self.name})
            raise
        logger.info(f"Worker {self.name} stopped", extra={"worker": self.name})

    async def tick(self, now: datetime) -> List[str]:
        """Run every due task once; returns the keys that ran"""
        ran = []
        today = now.date()
        for task in self.tasks:
            if self._stop.is_set():
                break
            if not task.trigger(now):
                continue
            if task.gated and self.gate.has_run(task.key, today):
                continue

            await self._execute(task)
            if task.gated:
                self.gate.mark_ran(task.key, today)
            ran.append(task.key)
        return ran

    async def _execute(self, task: ScheduledTask) -> None:
        start_time = time.perf_counter()
        logger.info(f"Running scheduled task {task.key}", extra={"worker": self.name, "task_key": task.key})
        try:
            result = task.handler()
            if inspect.isawaitable(result):
                await result
        except Exception:
            task_run_counter.labels(worker=self.name, task=task.key, outcome="failure").inc()
            log_task_run(self.name, task.key, "failure", (time.perf_counter() - start_time) * 1000)
            raise

        task_run_counter.labels(worker=self.name, task=task.key, outcome="success").inc()
        log_task_run(self.name, task.key, "success", (time.perf_counter() - start_time) * 1000)

    def _seconds_until_next(self, now: datetime) -> float:
        if self.next_wakeup is None:
            return self.interval_seconds
        return max((self.next_wakeup(now) - now).total_seconds(), 0.0)

    async def _sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
