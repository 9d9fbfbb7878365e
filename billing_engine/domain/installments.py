"""Installment plan generation for credit-card purchases"""

from datetime import date
from typing import List

from billing_engine.domain.billing_cycle import expected_installment_month
from billing_engine.domain.models import PlannedInstallment


def split_amount(amount_cents: int, num_installments: int) -> List[int]:
    """
    Split a purchase amount into equal installment shares.

    Last installment absorbs the rounding remainder (<= num_installments-1 cents drift).

    Example:
        R$ 100.00 in 3x -> [3333, 3333, 3334]
    """
    if amount_cents <= 0 or num_installments <= 0:
        return []

    base_amount, remainder = divmod(amount_cents, num_installments)
    shares = [base_amount] * num_installments
    shares[-1] += remainder
    return shares


def plan_installments(purchase_date: date, amount_cents: int, num_installments: int = 1) -> List[PlannedInstallment]:
    """
    Build the installment schedule of a credit purchase.

    Each share is routed to the invoice month the reconciler expects it in,
    so a purchase recorded through this plan is never seen as drifted.

    Args:
        purchase_date: Date the purchase was made
        amount_cents: Total purchase amount
        num_installments: Number of parcels (1 = single-shot credit)

    Returns:
        One PlannedInstallment per parcel, in sequence order
    """
    shares = split_amount(amount_cents, num_installments)
    return [
        PlannedInstallment(
            sequence=sequence,
            total_installments=num_installments,
            amount_cents=amount,
            invoice_month=expected_installment_month(purchase_date, sequence, num_installments),
        )
        for sequence, amount in enumerate(shares, start=1)
    ]
