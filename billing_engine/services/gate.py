"""Once-per-day gate for scheduled tasks, backed by an injectable last-run store"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Optional

from billing_engine.domain.ports import TaskRunStore
from billing_engine.utils.date_utils import local_today, utc_now

logger = logging.getLogger(__name__)


class InMemoryTaskRunStore:
    """Process-local TaskRunStore; forgets everything on restart"""

    def __init__(self) -> None:
        self._last_runs: Dict[str, date] = {}

    def get_last_run(self, key: str) -> Optional[date]:
        return self._last_runs.get(key)

    def set_last_run(self, key: str, day: date) -> None:
        self._last_runs[key] = day

    def purge_before(self, cutoff: date) -> int:
        stale = [key for key, day in self._last_runs.items() if day < cutoff]
        for key in stale:
            del self._last_runs[key]
        return len(stale)


class IdempotentTaskGate:
    """
    Prevents a scheduled task from running twice on the same local calendar day.

    Single-instance only: two processes sharing a store can still race
    between the check and the record.
    """

    def __init__(self, store: TaskRunStore | None = None, clock: Callable[[], datetime] = utc_now):
        self.store = store if store is not None else InMemoryTaskRunStore()
        self.clock = clock

    def today(self) -> date:
        return local_today(self.clock())

    def has_run(self, key: str, today: date) -> bool:
        return self.store.get_last_run(key) == today

    def mark_ran(self, key: str, today: date) -> None:
        self.store.set_last_run(key, today)

    def should_run(self, key: str, today: date) -> bool:
        """
        Check-and-record in one call.

        Returns False when `key` already ran on `today`; otherwise records
        `today` as its last run and returns True.
        """
        if self.has_run(key, today):
            return False
        self.mark_ran(key, today)
        return True

    def should_run_today(self, key: str) -> bool:
        return self.should_run(key, self.today())

    def has_run_today(self, key: str) -> bool:
        return self.has_run(key, self.today())

    def mark_ran_today(self, key: str) -> None:
        self.mark_ran(key, self.today())

    def purge(self, older_than_days: int) -> int:
        """Drop last-run records older than the retention window"""
        removed = self.store.purge_before(self.today() - timedelta(days=older_than_days))
        if removed:
            logger.info(f"Purged {removed} stale task run records", extra={"removed": removed})
        return removed
