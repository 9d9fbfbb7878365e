"""Background jobs run by the host process: startup reconciliation, maintenance and the weekly audit"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from billing_engine.config import settings
from billing_engine.domain.models import ReconciliationResult
from billing_engine.domain.recurrence import next_weekly_instant
from billing_engine.infrastructure.database.repositories import (
    ObligationRepository,
    SqlAlchemyBillingGateway,
    SqlTaskRunStore,
)
from billing_engine.infrastructure.observability.logging import log_reconciliation
from billing_engine.infrastructure.observability.metrics import record_reconciliation
from billing_engine.services.gate import IdempotentTaskGate
from billing_engine.services.obligations import LoggingNotifier, Notifier, dispatch_reminders
from billing_engine.services.reconciler import InvoiceReconciler
from billing_engine.services.worker import PollingWorker, ScheduledTask, always, last_day_of_month, within_hour
from billing_engine.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def reconcile_with_session(session_factory: SessionFactory) -> ReconciliationResult:
    """One reconciliation run in a dedicated session"""
    db = session_factory()
    try:
        result = InvoiceReconciler(SqlAlchemyBillingGateway(db)).reconcile_once()
    finally:
        db.close()
    log_reconciliation(result)
    record_reconciliation(result)
    return result


async def run_startup_reconciliation(
    session_factory: SessionFactory,
    warmup_seconds: float | None = None,
    stop_event: Optional[asyncio.Event] = None,
) -> Optional[ReconciliationResult]:
    """
    Wait for the warm-up delay, then reconcile exactly once.

    Never raises: failures are logged and left for the next process start.
    Returns None when stopped during warm-up or when the run failed.
    """
    warmup = settings.reconcile_warmup_seconds if warmup_seconds is None else warmup_seconds
    stop_event = stop_event or asyncio.Event()

    try:
        await asyncio.wait_for(stop_event.wait(), timeout=warmup)
        logger.info("Startup reconciliation skipped: shutdown requested during warm-up")
        return None
    except asyncio.TimeoutError:
        pass

    logger.info("Startup reconciliation started")
    try:
        return reconcile_with_session(session_factory)
    except Exception:
        logger.exception("Startup reconciliation failed")
        return None
    finally:
        logger.info("Startup reconciliation finished (single run)")


def build_maintenance_worker(
    session_factory: SessionFactory,
    notifier: Notifier | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> PollingWorker:
    """
    Worker that delivers obligation reminders every tick, reconciles invoices
    on the last day of each month before they close and purges old task-run
    records once a day at the maintenance hour.
    """
    notifier = notifier or LoggingNotifier()

    gate = IdempotentTaskGate(SqlTaskRunStore(session_factory), clock=clock)

    def send_reminders() -> None:
        db = session_factory()
        try:
            sent = dispatch_reminders(ObligationRepository(db).get_active(), clock(), gate, notifier, persist=db.commit)
        finally:
            db.close()
        if sent:
            logger.info(f"Sent {sent} obligation reminders", extra={"sent": sent})

    def month_end_reconciliation() -> None:
        reconcile_with_session(session_factory)

    def purge_task_runs() -> None:
        gate.purge(settings.task_run_retention_days)

    return PollingWorker(
        name="maintenance",
        tasks=[
            ScheduledTask("ObligationReminders", always(), send_reminders, gated=False),
            ScheduledTask(
                "MonthEndReconciliation",
                last_day_of_month(settings.month_end_reconcile_hour),
                month_end_reconciliation,
            ),
            ScheduledTask("TaskRunPurge", within_hour(settings.maintenance_hour), purge_task_runs),
        ],
        gate=gate,
        interval_seconds=settings.reminder_interval_seconds,
        clock=clock,
    )


def build_weekly_audit_worker(
    session_factory: SessionFactory,
    clock: Callable[[], datetime] = utc_now,
) -> PollingWorker:
    """Worker that sleeps until the weekly audit instant and reconciles once"""
    weekday = settings.weekly_audit_weekday
    hour = settings.weekly_audit_hour

    def weekly_reconciliation() -> None:
        reconcile_with_session(session_factory)

    return PollingWorker(
        name="weekly-audit",
        tasks=[ScheduledTask("WeeklyReconciliation", within_hour(hour, weekday=weekday), weekly_reconciliation)],
        gate=IdempotentTaskGate(SqlTaskRunStore(session_factory), clock=clock),
        next_wakeup=lambda now: next_weekly_instant(now, weekday, hour),
        clock=clock,
    )
