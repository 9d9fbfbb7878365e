"""Prometheus metrics for reconciliation repairs and background worker health"""

from prometheus_client import Counter, Histogram

from billing_engine.domain.models import ReconciliationResult

# Reconciliation metrics
installments_reassigned_counter = Counter(
    "billing_installments_reassigned_total",
    "Installments moved to the invoice of their expected month",
)

invoice_totals_corrected_counter = Counter(
    "billing_invoice_totals_corrected_total",
    "Open invoices whose stored total drifted from the sum of installments",
)

ghost_invoices_removed_counter = Counter(
    "billing_ghost_invoices_removed_total",
    "Empty invoices (no installments, zero total) removed",
)

reconciliation_skipped_counter = Counter(
    "billing_reconciliation_skipped_total",
    "Installments skipped during reconciliation because of per-item errors",
)

reconciliation_duration_histogram = Histogram(
    "billing_reconciliation_duration_seconds",
    "Duration of a full reconciliation run",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

# Worker metrics
task_run_counter = Counter(
    "scheduled_task_runs_total",
    "Scheduled task executions",
    ["worker", "task", "outcome"],  # success | failure
)

worker_iteration_failures_counter = Counter(
    "worker_iteration_failures_total",
    "Worker loop iterations that raised and were backed off",
    ["worker"],
)


def record_reconciliation(result: ReconciliationResult) -> None:
    """Record reconciliation metrics for monitoring drift over time"""
    installments_reassigned_counter.inc(result.reassigned)
    invoice_totals_corrected_counter.inc(result.corrected)
    ghost_invoices_removed_counter.inc(result.removed)
    reconciliation_skipped_counter.inc(result.skipped)
    reconciliation_duration_histogram.observe(result.duration_seconds)
