"""Integration tests for the SQLAlchemy repositories"""

import pytest
from datetime import date
from billing_engine.domain.exceptions import CardNotFoundError, ConfigurationError
from billing_engine.domain.models import PaymentMethod
from billing_engine.infrastructure.database.models import CreditCard, RecurringObligation
from billing_engine.infrastructure.database.repositories import (
    ObligationRepository,
    PurchaseRepository,
    SqlAlchemyBillingGateway,
    SqlTaskRunStore,
)


def test_get_or_create_invoice_creates_once(db, card):
    gateway = SqlAlchemyBillingGateway(db)

    first = gateway.get_or_create_invoice(card.id, date(2025, 3, 18))
    second = gateway.get_or_create_invoice(card.id, date(2025, 3, 1))

    assert first.id == second.id
    assert first.reference_month == date(2025, 3, 1)
    assert first.closing_date == date(2025, 3, 5)  # Weekend then Carnival
    assert first.due_date == date(2025, 3, 25)
    assert first.total_cents == 0
    assert first.status == "open"


def test_get_or_create_invoice_clamps_due_day(db):
    card = CreditCard(name="Inter", closing_day=25, due_day=31)
    db.add(card)
    db.commit()

    invoice = SqlAlchemyBillingGateway(db).get_or_create_invoice(card.id, date(2025, 2, 1))

    assert invoice.due_date == date(2025, 2, 28)


def test_get_or_create_invoice_unknown_card(db):
    with pytest.raises(CardNotFoundError) as exc_info:
        SqlAlchemyBillingGateway(db).get_or_create_invoice(42, date(2025, 3, 1))

    assert exc_info.value.card_id == 42


def test_fetch_open_invoices_excludes_paid(db, card):
    gateway = SqlAlchemyBillingGateway(db)
    gateway.get_or_create_invoice(card.id, date(2025, 1, 1)).status = "paid"
    gateway.get_or_create_invoice(card.id, date(2025, 2, 1)).status = "closed"
    gateway.get_or_create_invoice(card.id, date(2025, 3, 1))
    gateway.save_changes()

    months = [i.reference_month for i in gateway.fetch_open_invoices()]

    assert months == [date(2025, 2, 1), date(2025, 3, 1)]


def test_record_purchase_in_installments(db, card):
    purchase = PurchaseRepository(db).record_purchase(
        10000, date(2025, 1, 20), card_id=card.id, installment_count=3, description="Notebook"
    )
    db.commit()

    installments = sorted(purchase.installments, key=lambda i: i.sequence)
    assert [i.amount_cents for i in installments] == [3333, 3333, 3334]
    assert [i.invoice.reference_month for i in installments] == [
        date(2025, 2, 1),
        date(2025, 3, 1),
        date(2025, 4, 1),
    ]
    assert [i.due_date for i in installments] == [date(2025, 2, 25), date(2025, 3, 25), date(2025, 4, 25)]
    assert [i.invoice.total_cents for i in installments] == [3333, 3333, 3334]


def test_record_purchase_accumulates_invoice_total(db, card):
    repo = PurchaseRepository(db)
    first = repo.record_purchase(5000, date(2025, 1, 5), card_id=card.id)
    second = repo.record_purchase(2500, date(2025, 1, 28), card_id=card.id)
    db.commit()

    invoice = first.installments[0].invoice
    assert second.installments[0].invoice_id == invoice.id
    assert invoice.total_cents == 7500


def test_record_non_credit_purchase_has_no_installments(db):
    purchase = PurchaseRepository(db).record_purchase(1990, date(2025, 1, 5), payment_method=PaymentMethod.PIX)
    db.commit()

    assert purchase.payment_method == "pix"
    assert purchase.installments == []


def test_record_credit_purchase_requires_card(db):
    with pytest.raises(ConfigurationError):
        PurchaseRepository(db).record_purchase(1990, date(2025, 1, 5))


def test_active_obligations_ordered_by_due_date(db):
    db.add_all(
        [
            RecurringObligation(description="Internet", due_date=date(2025, 3, 20)),
            RecurringObligation(description="Aluguel", due_date=date(2025, 3, 5)),
            RecurringObligation(description="Academia", due_date=date(2025, 3, 1), active=False),
        ]
    )
    db.commit()

    active = ObligationRepository(db).get_active()

    assert [o.description for o in active] == ["Aluguel", "Internet"]


def test_task_run_store_persists_across_sessions(session_factory):
    store = SqlTaskRunStore(session_factory)

    assert store.get_last_run("DailySummary") is None
    store.set_last_run("DailySummary", date(2025, 3, 9))
    store.set_last_run("DailySummary", date(2025, 3, 10))

    assert SqlTaskRunStore(session_factory).get_last_run("DailySummary") == date(2025, 3, 10)


def test_task_run_store_purge_before(session_factory):
    store = SqlTaskRunStore(session_factory)
    store.set_last_run("old", date(2024, 12, 1))
    store.set_last_run("recent", date(2025, 3, 1))

    removed = store.purge_before(date(2025, 1, 9))

    assert removed == 1
    assert store.get_last_run("old") is None
    assert store.get_last_run("recent") == date(2025, 3, 1)
