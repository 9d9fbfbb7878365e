"""Self-healing reconciliation of installment-to-invoice assignment and invoice totals"""

import logging
import time
from typing import Set

from billing_engine.config import settings
from billing_engine.domain.billing_cycle import expected_installment_month, participates_in_billing
from billing_engine.domain.exceptions import ConfigurationError, TransientStoreError
from billing_engine.domain.models import AuditOutcome, ReconciliationResult
from billing_engine.domain.ports import BillingGateway

logger = logging.getLogger(__name__)


class InvoiceReconciler:
    """
    Repairs installments bound to the wrong invoice month and stale invoice totals.

    Two phases, each safe to re-run:
    - A: move every credit installment to the invoice of its expected month
      (get-or-create), then recompute totals of every invoice touched.
    - B: audit all unpaid invoices, correcting drifted totals and removing
      empty ghost invoices.

    The phases are not wrapped in one transaction: a crash in between leaves
    some totals stale until the next run repairs them.
    """

    def __init__(self, gateway: BillingGateway, tolerance_cents: int | None = None):
        self.gateway = gateway
        self.tolerance_cents = settings.total_tolerance_cents if tolerance_cents is None else tolerance_cents
        self.skipped = 0
        self.dirty_invoice_ids: Set[int] = set()

    def reconcile_once(self) -> ReconciliationResult:
        """Run both phases once and report what was repaired"""
        start_time = time.perf_counter()
        self.skipped = 0
        self.dirty_invoice_ids = set()

        reassigned = self.reassign_installments()
        audit = self.audit_open_invoices()

        return ReconciliationResult(
            reassigned=reassigned,
            corrected=audit.corrected,
            removed=audit.removed,
            skipped=self.skipped,
            dirty_invoices=len(self.dirty_invoice_ids),
            duration_seconds=time.perf_counter() - start_time,
        )

    def reassign_installments(self) -> int:
        """
        Phase A: rebind drifted installments to the invoice of their expected month.

        Returns:
            Number of installments moved

        Raises:
            TransientStoreError: Gateway failure; the phase is aborted
        """
        reassigned = 0
        dirty = self.dirty_invoice_ids

        for installment in self.gateway.fetch_installments_with_invoice_and_purchase():
            purchase = installment.purchase
            current_invoice = installment.invoice
            if not participates_in_billing(purchase.payment_method):
                continue

            expected_month = expected_installment_month(
                purchase.purchase_date, installment.sequence, purchase.installment_count
            )
            if current_invoice.reference_month == expected_month:
                continue

            try:
                target = self.gateway.get_or_create_invoice(current_invoice.card_id, expected_month)
            except TransientStoreError:
                raise
            except ConfigurationError as e:
                self.skipped += 1
                logger.warning(
                    f"Cannot move installment {installment.id}: {e}",
                    extra={"installment_id": installment.id, "card_id": current_invoice.card_id},
                )
                continue
            except Exception:
                self.skipped += 1
                logger.exception(
                    f"Unexpected error moving installment {installment.id}",
                    extra={"installment_id": installment.id},
                )
                continue

            dirty.add(current_invoice.id)
            installment.invoice = target
            installment.due_date = target.due_date
            dirty.add(target.id)
            reassigned += 1

            logger.info(
                f"Installment {installment.id} ({installment.sequence}/{installment.total_installments}) "
                f"moved from invoice {current_invoice.id} ({current_invoice.reference_month:%m/%Y}) "
                f"to invoice {target.id} ({expected_month:%m/%Y})",
                extra={
                    "installment_id": installment.id,
                    "purchase_id": purchase.id,
                    "from_invoice_id": current_invoice.id,
                    "to_invoice_id": target.id,
                },
            )

        if reassigned:
            self.gateway.save_changes()
            self._recompute_dirty_totals(dirty)
            self.gateway.save_changes()

        return reassigned

    def audit_open_invoices(self) -> AuditOutcome:
        """
        Phase B: recompute every unpaid invoice from its installments.

        Empty invoices with a zero total are deleted; totals drifting beyond
        the tolerance are corrected.
        """
        outcome = AuditOutcome()

        for invoice in self.gateway.fetch_open_invoices():
            installments = list(invoice.installments)
            recomputed = sum(i.amount_cents for i in installments)

            if not installments and recomputed == 0:
                logger.info(
                    f"Invoice {invoice.id} ({invoice.reference_month:%m/%Y}) removed: no installments",
                    extra={"invoice_id": invoice.id, "card_id": invoice.card_id},
                )
                self.gateway.delete_invoice(invoice)
                outcome.removed += 1
                continue

            if abs(invoice.total_cents - recomputed) > self.tolerance_cents:
                logger.info(
                    f"Invoice {invoice.id} ({invoice.reference_month:%m/%Y}) total corrected "
                    f"from {invoice.total_cents} to {recomputed} cents",
                    extra={"invoice_id": invoice.id, "old_total_cents": invoice.total_cents, "new_total_cents": recomputed},
                )
                invoice.total_cents = recomputed
                outcome.corrected += 1

        if outcome.corrected or outcome.removed:
            self.gateway.save_changes()

        return outcome

    def _recompute_dirty_totals(self, invoice_ids: Set[int]) -> None:
        for invoice_id in sorted(invoice_ids):
            invoice = self.gateway.get_invoice(invoice_id)
            if invoice is None:
                continue
            invoice.total_cents = sum(i.amount_cents for i in invoice.installments)
            logger.info(
                f"Invoice {invoice.id} ({invoice.reference_month:%m/%Y}) total recomputed to {invoice.total_cents} cents",
                extra={"invoice_id": invoice.id},
            )
