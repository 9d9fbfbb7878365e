"""Reminder stages and cycle roll-forward for recurring payment obligations"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, List, Optional, Protocol

from billing_engine.domain.models import DEFAULT_REMIND_FROM, DEFAULT_REMIND_UNTIL, Frequency
from billing_engine.domain.recurrence import advance_past
from billing_engine.services.gate import IdempotentTaskGate
from billing_engine.utils.date_utils import local_today, to_local

logger = logging.getLogger(__name__)


@dataclass
class DueReminder:
    """Reminder a notification sender should deliver today"""

    obligation_id: int
    description: str
    amount_cents: Optional[int]
    due_date: date
    stage: str  # D-3, D-1, D-0, D+N


class Notifier(Protocol):
    def notify(self, reminder: DueReminder) -> None:
        ...


class LoggingNotifier:
    """Default notifier: delivery belongs to the host, this only records intent"""

    def notify(self, reminder: DueReminder) -> None:
        logger.info(
            f"Reminder {reminder.stage} for obligation {reminder.obligation_id} ({reminder.description})",
            extra={"obligation_id": reminder.obligation_id, "stage": reminder.stage, "due_date": reminder.due_date.isoformat()},
        )


def reminder_stage(due_date: date, today: date, lead_days: int = 3) -> Optional[str]:
    """
    Which reminder, if any, is due today.

    D-{lead} ahead of time, D-1 the day before, D-0 on the due date and
    D+N every day after it until the obligation is rolled forward.
    """
    days_until_due = (due_date - today).days
    if days_until_due == lead_days:
        return f"D-{lead_days}"
    if days_until_due == 1:
        return "D-1"
    if days_until_due == 0:
        return "D-0"
    if days_until_due < 0:
        return f"D+{-days_until_due}"
    return None


def obligation_frequency(obligation: Any) -> Optional[Frequency]:
    if obligation.frequency:
        return Frequency(obligation.frequency)
    return Frequency.MONTHLY if obligation.is_recurring else None


def roll_forward(obligation: Any, now: datetime) -> bool:
    """
    Move a settled obligation to its next cycle.

    Non-recurring obligations are deactivated. Recurring ones jump to the
    first occurrence after today (local), skipping any missed cycles.

    Returns:
        True if the obligation is still active afterwards
    """
    frequency = obligation_frequency(obligation)
    if frequency is None:
        obligation.active = False
        logger.info(f"Obligation {obligation.id} deactivated: not recurring", extra={"obligation_id": obligation.id})
        return False

    today = local_today(now)
    obligation.due_date = advance_past(obligation.due_date, today, frequency, obligation.preferred_day)
    logger.info(
        f"Obligation {obligation.id} advanced to {obligation.due_date:%d/%m/%Y}",
        extra={"obligation_id": obligation.id, "due_date": obligation.due_date.isoformat()},
    )
    return True


def expire(obligation: Any, today: date) -> bool:
    """Deactivate an obligation whose recurrence ended before `today`; True if it expired"""
    if obligation.end_date is not None and today > obligation.end_date:
        obligation.active = False
        logger.info(
            f"Obligation {obligation.id} deactivated: past end date {obligation.end_date:%d/%m/%Y}",
            extra={"obligation_id": obligation.id},
        )
        return True
    return False


def collect_due_reminders(obligations: Iterable[Any], today: date) -> List[DueReminder]:
    """Reminders due today for active obligations"""
    reminders = []
    for obligation in obligations:
        if not obligation.active:
            continue
        stage = reminder_stage(obligation.due_date, today, obligation.lead_days)
        if stage is None:
            continue
        reminders.append(
            DueReminder(
                obligation_id=obligation.id,
                description=obligation.description,
                amount_cents=obligation.amount_cents,
                due_date=obligation.due_date,
                stage=stage,
            )
        )
    return reminders


def in_send_window(obligation: Any, moment: datetime) -> bool:
    """Whether the local time of `moment` falls inside the obligation's reminder window (inclusive)"""
    start = obligation.remind_from or DEFAULT_REMIND_FROM
    end = obligation.remind_until or DEFAULT_REMIND_UNTIL
    return start <= to_local(moment).time() <= end


def dispatch_reminders(
    obligations: Iterable[Any],
    now: datetime,
    gate: IdempotentTaskGate,
    notifier: Notifier,
    persist: Optional[Callable[[], None]] = None,
) -> int:
    """
    Deliver today's reminders once each.

    Each (obligation, stage) pair is gated per local day and only sent inside
    the obligation's local reminder window; one failing delivery is logged
    and does not block the others.

    `persist` saves the obligation changes (expiry, last_sent_at). Gate
    records are written only after it returns, so a failed save leaves the
    reminders eligible for the next tick.
    """
    today = local_today(now)
    by_id = {}
    active = []
    for obligation in obligations:
        if expire(obligation, today):
            continue
        by_id[obligation.id] = obligation
        active.append(obligation)

    delivered = []
    for reminder in collect_due_reminders(active, today):
        if not in_send_window(by_id[reminder.obligation_id], now):
            continue
        key = f"reminder:{reminder.obligation_id}:{reminder.stage}"
        if gate.has_run(key, today):
            continue
        try:
            notifier.notify(reminder)
        except Exception:
            logger.exception(
                f"Failed to deliver reminder for obligation {reminder.obligation_id}",
                extra={"obligation_id": reminder.obligation_id, "stage": reminder.stage},
            )
            continue
        by_id[reminder.obligation_id].last_sent_at = now
        delivered.append(key)

    if persist is not None:
        persist()
    for key in delivered:
        gate.mark_ran(key, today)
    return len(delivered)
