"""Credit-card billing cycle: which invoice month a purchase or installment belongs to"""

from datetime import date

from billing_engine.domain.holidays import next_business_day
from billing_engine.domain.models import PaymentMethod
from billing_engine.utils.date_utils import add_months, clamp_day, month_start


def participates_in_billing(method: PaymentMethod | str) -> bool:
    """Only credit purchases generate invoice-bound installments"""
    return PaymentMethod(method) is PaymentMethod.CREDIT


def expected_invoice_month(purchase_date: date, closing_day: int) -> date:
    """
    Invoice month for a purchase given the card's closing day.

    Purchases on or before the (clamped) closing day stay in the purchase
    month; later purchases roll into the next month.

    Examples (closing_day = 15):
        2025-01-10 -> 2025-01-01
        2025-01-15 -> 2025-01-01
        2025-01-16 -> 2025-02-01
    """
    closing = clamp_day(closing_day, purchase_date.year, purchase_date.month)
    if purchase_date.day <= closing:
        return month_start(purchase_date)
    return month_start(add_months(purchase_date, 1))


def expected_installment_month(purchase_date: date, sequence: int, total_installments: int) -> date:
    """
    Invoice month an installment must be bound to.

    Parcelled purchases post installment N exactly N months after the
    purchase; a single-shot credit purchase posts one month later.
    """
    months = sequence if total_installments > 1 else 1
    return month_start(add_months(purchase_date, months))


def invoice_closing_date(reference_month: date) -> date:
    """First business day of the reference month"""
    return next_business_day(month_start(reference_month))


def invoice_due_date(reference_month: date, due_day: int) -> date:
    """Card due day inside the reference month, clamped to the month length"""
    start = month_start(reference_month)
    return start.replace(day=clamp_day(due_day, start.year, start.month))
