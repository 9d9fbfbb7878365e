"""Unit tests for billing-cycle month resolution"""

import pytest
from datetime import date
from billing_engine.domain.billing_cycle import (
    expected_installment_month,
    expected_invoice_month,
    invoice_closing_date,
    invoice_due_date,
    participates_in_billing,
)
from billing_engine.domain.models import PaymentMethod


@pytest.mark.parametrize(
    "purchase_date, closing_day, expected",
    [
        (date(2025, 1, 10), 15, date(2025, 1, 1)),
        (date(2025, 1, 15), 15, date(2025, 1, 1)),  # Closing day itself stays
        (date(2025, 1, 16), 15, date(2025, 2, 1)),
        (date(2026, 1, 31), 15, date(2026, 2, 1)),
        (date(2026, 12, 20), 15, date(2027, 1, 1)),  # Year rollover
        (date(2026, 2, 28), 30, date(2026, 2, 1)),  # Closing 30 clamps to Feb 28
        (date(2026, 3, 1), 1, date(2026, 3, 1)),
        (date(2026, 3, 2), 1, date(2026, 4, 1)),
    ],
)
def test_expected_invoice_month(purchase_date, closing_day, expected):
    assert expected_invoice_month(purchase_date, closing_day) == expected


def test_expected_invoice_month_malformed_closing_day_is_clamped():
    assert expected_invoice_month(date(2025, 4, 30), 99) == date(2025, 4, 1)
    assert expected_invoice_month(date(2025, 4, 1), 0) == date(2025, 4, 1)
    assert expected_invoice_month(date(2025, 4, 2), 0) == date(2025, 5, 1)


def test_expected_installment_month_parcelled():
    """Installment N posts N months after the purchase"""
    purchase = date(2025, 1, 10)
    months = [expected_installment_month(purchase, n, 3) for n in (1, 2, 3)]
    assert months == [date(2025, 2, 1), date(2025, 3, 1), date(2025, 4, 1)]


def test_expected_installment_month_single_shot():
    assert expected_installment_month(date(2025, 1, 10), 1, 1) == date(2025, 2, 1)
    assert expected_installment_month(date(2025, 12, 31), 1, 1) == date(2026, 1, 1)


def test_expected_installment_month_end_of_month_purchase():
    # Jan 31 + 1 month clamps to Feb 28, still February
    assert expected_installment_month(date(2025, 1, 31), 1, 2) == date(2025, 2, 1)
    assert expected_installment_month(date(2025, 1, 31), 2, 2) == date(2025, 3, 1)


def test_only_credit_participates():
    assert participates_in_billing(PaymentMethod.CREDIT)
    assert participates_in_billing("credit")
    assert not participates_in_billing(PaymentMethod.DEBIT)
    assert not participates_in_billing(PaymentMethod.PIX)
    assert not participates_in_billing(PaymentMethod.CASH)


def test_invoice_closing_date_first_business_day():
    assert invoice_closing_date(date(2025, 1, 1)) == date(2025, 1, 2)  # New Year
    assert invoice_closing_date(date(2025, 3, 1)) == date(2025, 3, 5)  # Weekend + Carnival
    assert invoice_closing_date(date(2025, 4, 1)) == date(2025, 4, 1)


def test_invoice_due_date_clamped():
    assert invoice_due_date(date(2025, 2, 1), 31) == date(2025, 2, 28)
    assert invoice_due_date(date(2024, 2, 1), 31) == date(2024, 2, 29)
    assert invoice_due_date(date(2025, 3, 1), 10) == date(2025, 3, 10)
