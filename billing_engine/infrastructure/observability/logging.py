"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from billing_engine.config import settings
from billing_engine.domain.models import ReconciliationResult


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_reconciliation(result: ReconciliationResult) -> None:
    """Log structured reconciliation outcome for analysis"""
    message = "Reconciliation completed" if result.changed else "Reconciliation completed, nothing to repair"
    logging.getLogger("billing_engine.reconciliation").info(
        message,
        extra={
            "step": "reconciliation_complete",
            "reassigned": result.reassigned,
            "corrected": result.corrected,
            "removed": result.removed,
            "skipped": result.skipped,
            "dirty_invoices": result.dirty_invoices,
            "duration_ms": round(result.duration_seconds * 1000, 2),
        },
    )


def log_task_run(worker: str, task_key: str, outcome: str, duration_ms: float) -> None:
    """Log one scheduled task execution"""
    logging.getLogger("billing_engine.worker").info(
        "Scheduled task finished",
        extra={
            "worker": worker,
            "task_key": task_key,
            "step": "task_run",
            "outcome": outcome,
            "duration_ms": duration_ms,
        },
    )
