"""Storage contracts consumed by the services; implemented in infrastructure.database"""

from datetime import date
from typing import Any, List, Optional, Protocol


class BillingGateway(Protocol):
    """Minimal persistence contract used by the invoice reconciler"""

    def fetch_installments_with_invoice_and_purchase(self) -> List[Any]:
        """Installments bound to both an invoice and a purchase"""
        ...

    def fetch_open_invoices(self) -> List[Any]:
        """Invoices whose status is not paid, with installments loaded"""
        ...

    def get_invoice(self, invoice_id: int) -> Optional[Any]:
        ...

    def get_or_create_invoice(self, card_id: int, month: date) -> Any:
        """Raises CardNotFoundError when the invoice must be created for an unknown card"""
        ...

    def lookup_card(self, card_id: int) -> Optional[Any]:
        ...

    def delete_invoice(self, invoice: Any) -> None:
        ...

    def save_changes(self) -> None:
        """Commit pending changes; raises TransientStoreError on failure"""
        ...


class TaskRunStore(Protocol):
    """Last-run bookkeeping for the idempotent task gate"""

    def get_last_run(self, key: str) -> Optional[date]:
        ...

    def set_last_run(self, key: str, day: date) -> None:
        ...

    def purge_before(self, cutoff: date) -> int:
        """Drop records whose last run is older than `cutoff`; returns how many"""
        ...
