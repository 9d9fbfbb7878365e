"""SQLAlchemy ORM models for cards, purchases, installments, invoices and scheduling state"""

from sqlalchemy import BigInteger, Boolean, Column, Date, DateTime, ForeignKey, Integer, Text, Time
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from billing_engine.domain.models import DEFAULT_REMIND_FROM, DEFAULT_REMIND_UNTIL, InvoiceStatus, PaymentMethod

Base = declarative_base()


class CreditCard(Base):
    """Credit card with its billing-cycle configuration"""

    __tablename__ = "credit_card"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    closing_day = Column(Integer, nullable=False, default=1)
    due_day = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    invoices = relationship("Invoice", back_populates="card")


class Purchase(Base):
    """Recorded expense; credit purchases are split into installments"""

    __tablename__ = "purchase"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(Integer, ForeignKey("credit_card.id"), nullable=True, index=True)
    description = Column(Text, nullable=False, default="")
    amount_cents = Column(BigInteger, nullable=False)
    purchase_date = Column(Date, nullable=False)
    payment_method = Column(Text, nullable=False, default=PaymentMethod.CREDIT.value)
    installment_count = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    installments = relationship("Installment", back_populates="purchase", cascade="all, delete-orphan")


class Invoice(Base):
    """Monthly card statement; reference_month is always the first day of a month"""

    __tablename__ = "invoice"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(Integer, ForeignKey("credit_card.id"), nullable=False, index=True)
    reference_month = Column(Date, nullable=False)
    closing_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    total_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default=InvoiceStatus.OPEN.value)

    card = relationship("CreditCard", back_populates="invoices")
    installments = relationship("Installment", back_populates="invoice")


class Installment(Base):
    """One repayment share (sequence of total_installments) of a purchase"""

    __tablename__ = "installment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    purchase_id = Column(Integer, ForeignKey("purchase.id", ondelete="CASCADE"), nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoice.id"), nullable=True, index=True)
    sequence = Column(Integer, nullable=False)
    total_installments = Column(Integer, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False)
    paid = Column(Boolean, nullable=False, default=False)

    purchase = relationship("Purchase", back_populates="installments")
    invoice = relationship("Invoice", back_populates="installments")


class RecurringObligation(Base):
    """Bill the user wants to be reminded about, optionally recurring"""

    __tablename__ = "recurring_obligation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    description = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=True)
    due_date = Column(Date, nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=False)
    frequency = Column(Text, nullable=True)  # weekly | biweekly | monthly | yearly
    preferred_day = Column(Integer, nullable=True)
    lead_days = Column(Integer, nullable=False, default=3)
    remind_from = Column(Time, nullable=False, default=DEFAULT_REMIND_FROM)  # Local time
    remind_until = Column(Time, nullable=False, default=DEFAULT_REMIND_UNTIL)
    end_date = Column(Date, nullable=True)
    last_sent_at = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, nullable=False, default=True)


class ScheduledTaskRun(Base):
    """Last successful run date per scheduled task key"""

    __tablename__ = "scheduled_task_run"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_key = Column(Text, nullable=False, unique=True)
    last_run_on = Column(Date, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
