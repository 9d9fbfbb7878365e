"""Pydantic schemas for the host's operational endpoints"""

from typing import Optional

from pydantic import BaseModel


class ReconciliationReport(BaseModel):
    """Outcome of the last startup reconciliation"""

    reassigned: int
    corrected: int
    removed: int
    skipped: int
    dirty_invoices: int
    duration_seconds: float


class HealthResponse(BaseModel):
    """Response for GET /health"""

    status: str = "ok"
    service: str
    workers_enabled: bool
    last_reconciliation: Optional[ReconciliationReport] = None
