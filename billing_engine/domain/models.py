"""Domain models - pure Python dataclasses and enums shared by services and storage"""

import enum
from dataclasses import dataclass
from datetime import date, time


# Local time-of-day window in which obligation reminders may be delivered
DEFAULT_REMIND_FROM = time(9, 0)
DEFAULT_REMIND_UNTIL = time(20, 0)


class PaymentMethod(str, enum.Enum):
    """How a purchase was paid; only credit purchases are billed on invoices"""

    CREDIT = "credit"
    DEBIT = "debit"
    PIX = "pix"
    CASH = "cash"


class InvoiceStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    PAID = "paid"


class Frequency(str, enum.Enum):
    """Recurrence of a payment obligation"""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass
class PlannedInstallment:
    """Single share of a purchase, before it is persisted"""

    sequence: int
    total_installments: int
    amount_cents: int
    invoice_month: date


@dataclass
class AuditOutcome:
    """Result of the open-invoice audit"""

    corrected: int = 0
    removed: int = 0


@dataclass
class ReconciliationResult:
    """Counts reported by one reconciliation run"""

    reassigned: int
    corrected: int
    removed: int
    skipped: int
    dirty_invoices: int
    duration_seconds: float

    @property
    def changed(self) -> bool:
        return bool(self.reassigned or self.corrected or self.removed)
