"""Structural interfaces the services depend on. The SQLAlchemy repos satisfy them."""
from __future__ import annotations

from datetime import date
from typing import Any, Protocol


class InventoryStore(Protocol):
    def get(self, book_id: int) -> Any: ...
    def get_for_update(self, book_id: int) -> Any: ...
    def adjust_availability(self, book_id: int, delta: int) -> bool: ...


class BorrowerStore(Protocol):
    def get(self, borrower_id: int) -> Any: ...
    def get_for_update(self, borrower_id: int) -> Any: ...


class BorrowingLedger(Protocol):
    SORT_FIELDS: Any

    def get(self, borrowing_id: int) -> Any: ...
    def get_for_update(self, borrowing_id: int, active_only: bool = False) -> Any: ...
    def add(self, borrowing: Any) -> Any: ...
    def has_active_borrowing(self, borrower_id: int, book_id: int) -> bool: ...
    def mark_returned(self, borrowing_id: int, return_date: date) -> bool: ...
    def extend(self, borrowing_id: int, new_due_date: date, reason: str | None = None) -> bool: ...
    def query(self, borrower_id: int | None = None, book_id: int | None = None,
              status: str = "all", today: date | None = None,
              sort_by: str | None = None, sort_order: str = "DESC") -> Any: ...
    def find_overdue(self, today: date) -> list: ...
    def get_statistics(self, start_date: date, end_date: date, today: date) -> dict: ...
