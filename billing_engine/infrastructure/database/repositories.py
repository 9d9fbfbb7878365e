"""Data access layer for billing entities"""

import logging
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from billing_engine.domain.billing_cycle import invoice_closing_date, invoice_due_date, participates_in_billing
from billing_engine.domain.exceptions import CardNotFoundError, ConfigurationError, TransientStoreError
from billing_engine.domain.installments import plan_installments
from billing_engine.domain.models import InvoiceStatus, PaymentMethod
from billing_engine.infrastructure.database.models import (
    CreditCard,
    Installment,
    Invoice,
    Purchase,
    RecurringObligation,
    ScheduledTaskRun,
)
from billing_engine.utils.date_utils import month_start

logger = logging.getLogger(__name__)


class SqlAlchemyBillingGateway:
    """BillingGateway backed by a SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def fetch_installments_with_invoice_and_purchase(self) -> List[Installment]:
        """Installments bound to an invoice, with invoice and purchase eagerly loaded"""
        try:
            return list(
                self.db.scalars(
                    select(Installment)
                    .join(Installment.invoice)
                    .join(Installment.purchase)
                    .options(joinedload(Installment.invoice), joinedload(Installment.purchase))
                    .order_by(Installment.id)
                )
            )
        except SQLAlchemyError as e:
            raise TransientStoreError(f"Failed to load installments: {e}") from e

    def fetch_open_invoices(self) -> List[Invoice]:
        """Invoices not yet paid, with their installments loaded"""
        try:
            return list(
                self.db.scalars(
                    select(Invoice)
                    .where(Invoice.status != InvoiceStatus.PAID.value)
                    .options(selectinload(Invoice.installments))
                    .order_by(Invoice.id)
                )
            )
        except SQLAlchemyError as e:
            raise TransientStoreError(f"Failed to load open invoices: {e}") from e

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        try:
            return self.db.get(Invoice, invoice_id)
        except SQLAlchemyError as e:
            raise TransientStoreError(f"Failed to load invoice {invoice_id}: {e}") from e

    def find_invoice(self, card_id: int, month: date) -> Optional[Invoice]:
        try:
            return self.db.scalars(
                select(Invoice)
                .where(Invoice.card_id == card_id, Invoice.reference_month == month_start(month))
                .order_by(Invoice.id)
            ).first()
        except SQLAlchemyError as e:
            raise TransientStoreError(f"Failed to look up invoice of card {card_id}: {e}") from e

    def lookup_card(self, card_id: int) -> Optional[CreditCard]:
        try:
            return self.db.get(CreditCard, card_id)
        except SQLAlchemyError as e:
            raise TransientStoreError(f"Failed to load card {card_id}: {e}") from e

    def get_or_create_invoice(self, card_id: int, month: date) -> Invoice:
        """
        Invoice of `card_id` for `month`, created lazily when missing.

        New invoices close on the first business day of the month, fall due
        on the card's due day (clamped to the month) and start open with a
        zero total.

        Raises:
            CardNotFoundError: The invoice is missing and so is the card
            TransientStoreError: A lookup failed or the insert could not be flushed
        """
        reference_month = month_start(month)
        try:
            invoice = self.find_invoice(card_id, reference_month)
            if invoice is not None:
                return invoice
            card = self.lookup_card(card_id)
        except SQLAlchemyError as e:
            raise TransientStoreError(f"Failed to look up invoice of card {card_id}: {e}") from e

        if card is None:
            raise CardNotFoundError(card_id)

        invoice = Invoice(
            card_id=card_id,
            reference_month=reference_month,
            closing_date=invoice_closing_date(reference_month),
            due_date=invoice_due_date(reference_month, card.due_day),
            total_cents=0,
            status=InvoiceStatus.OPEN.value,
        )
        self.db.add(invoice)
        try:
            self.db.flush()  # Get ID without committing
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientStoreError(f"Failed to create invoice for card {card_id}: {e}") from e

        logger.info(
            "Invoice created",
            extra={"invoice_id": invoice.id, "card_id": card_id, "reference_month": reference_month.isoformat()},
        )
        return invoice

    def delete_invoice(self, invoice: Invoice) -> None:
        self.db.delete(invoice)

    def save_changes(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientStoreError(f"Failed to save changes: {e}") from e


class PurchaseRepository:
    """Repository for purchases and their installments"""

    def __init__(self, db: Session):
        self.db = db
        self.gateway = SqlAlchemyBillingGateway(db)

    def record_purchase(
        self,
        amount_cents: int,
        purchase_date: date,
        payment_method: PaymentMethod = PaymentMethod.CREDIT,
        card_id: Optional[int] = None,
        installment_count: int = 1,
        description: str = "",
    ) -> Purchase:
        """
        Persist a purchase; credit purchases get installments bound to invoices.

        Invoice totals are bumped here and re-verified by the reconciler.

        Raises:
            ConfigurationError: Credit purchase without a card
            CardNotFoundError: Credit purchase references an unknown card
        """
        method = PaymentMethod(payment_method)
        purchase = Purchase(
            card_id=card_id,
            description=description,
            amount_cents=amount_cents,
            purchase_date=purchase_date,
            payment_method=method.value,
            installment_count=installment_count,
        )
        self.db.add(purchase)

        if participates_in_billing(method):
            if card_id is None:
                raise ConfigurationError("Credit purchases must reference a card")
            for planned in plan_installments(purchase_date, amount_cents, installment_count):
                invoice = self.gateway.get_or_create_invoice(card_id, planned.invoice_month)
                purchase.installments.append(
                    Installment(
                        sequence=planned.sequence,
                        total_installments=planned.total_installments,
                        amount_cents=planned.amount_cents,
                        due_date=invoice.due_date,
                        invoice=invoice,
                    )
                )
                invoice.total_cents += planned.amount_cents

        self.db.flush()
        return purchase


class ObligationRepository:
    """Repository for recurring payment obligations"""

    def __init__(self, db: Session):
        self.db = db

    def get_active(self) -> List[RecurringObligation]:
        return list(
            self.db.scalars(
                select(RecurringObligation)
                .where(RecurringObligation.active.is_(True))
                .order_by(RecurringObligation.due_date, RecurringObligation.id)
            )
        )


class SqlTaskRunStore:
    """
    TaskRunStore persisted in the scheduled_task_run table; survives restarts.

    Every call uses its own short-lived session so a long-running worker
    never holds a connection between ticks.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_last_run(self, key: str) -> Optional[date]:
        db = self.session_factory()
        try:
            run = self._find(db, key)
            return run.last_run_on if run else None
        finally:
            db.close()

    def set_last_run(self, key: str, day: date) -> None:
        db = self.session_factory()
        try:
            run = self._find(db, key)
            if run is None:
                db.add(ScheduledTaskRun(task_key=key, last_run_on=day))
            else:
                run.last_run_on = day
            self._commit(db)
        finally:
            db.close()

    def purge_before(self, cutoff: date) -> int:
        db = self.session_factory()
        try:
            result = db.execute(delete(ScheduledTaskRun).where(ScheduledTaskRun.last_run_on < cutoff))
            self._commit(db)
            return result.rowcount or 0
        finally:
            db.close()

    @staticmethod
    def _find(db: Session, key: str) -> Optional[ScheduledTaskRun]:
        return db.scalars(select(ScheduledTaskRun).where(ScheduledTaskRun.task_key == key)).first()

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientStoreError(f"Failed to save task run: {e}") from e
