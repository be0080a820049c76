from __future__ import annotations

from datetime import date, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from circulation.errors import AlreadyReturned, CirculationError, Conflict, InvalidInput, NotFound, Unavailable
from circulation.extensions import db
from circulation.models.borrowing import Borrowing
from circulation.repositories.borrowing_repo import STATUSES
from circulation.repositories.protocols import BorrowerStore, BorrowingLedger, InventoryStore
from circulation.services.extension_policy import ExtensionPolicy
from circulation.utils.dates import parse_date
from circulation.utils.pagination import normalize_page, normalize_sort, paginate
from circulation.utils.serializers import serialize_borrowing


class CirculationService:
    """
    Checkout / return / extend as single transactions, plus the borrowing queries.

    Every write path follows the same shape: lock the rows it reads, re-check the
    precondition inside a conditional UPDATE, commit once. Any failure rolls the
    whole unit back, so book counters and borrowing rows never drift apart.
    """

    def __init__(
        self,
        books: InventoryStore,
        borrowers: BorrowerStore,
        borrowings: BorrowingLedger,
        session=None,
        today=date.today,
        default_loan_days: int = 14,
        extension_policy: ExtensionPolicy | None = None,
        default_page_size: int = 10,
        max_page_size: int = 100,
    ):
        if books is None:
            raise ValueError("book store is required")
        if borrowers is None:
            raise ValueError("borrower store is required")
        if borrowings is None:
            raise ValueError("borrowing ledger is required")

        self.books = books
        self.borrowers = borrowers
        self.borrowings = borrowings
        self.session = session or db.session
        self._today = today
        self.default_loan_days = default_loan_days
        self.extension_policy = extension_policy or ExtensionPolicy()
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def today(self) -> date:
        return self._today()

    def _detailed(self, borrowing_id: int) -> dict:
        borrowing = self.borrowings.get(borrowing_id)
        if not borrowing:
            raise NotFound("Borrowing not found")
        return serialize_borrowing(borrowing, self.today())

    def _rollback(self, op: str, e: Exception):
        self.session.rollback()
        if isinstance(e, CirculationError):
            current_app.logger.warning(f"[circulation] {op} refused: {e.message}")
        else:
            current_app.logger.exception(f"[circulation] {op} failed: {e}")

    # -----------------------------
    # Checkout
    # -----------------------------
    def _resolve_due_date(self, due_date, today: date) -> date:
        if due_date is None or due_date == "":
            return today + timedelta(days=self.default_loan_days)

        due = parse_date(due_date, "due date")
        if due <= today:
            raise InvalidInput("Due date must be in the future")
        return due

    def checkout(self, book_id: int, borrower_id: int, due_date=None) -> dict:
        today = self.today()
        due = self._resolve_due_date(due_date, today)

        try:
            book = self.books.get_for_update(book_id)
            if not book:
                raise NotFound("Book not found")

            if not self.borrowers.get_for_update(borrower_id):
                raise NotFound("Borrower not found")

            if self.borrowings.has_active_borrowing(borrower_id, book_id):
                raise Conflict("Borrower already has this book checked out")

            if book.available_quantity is None or book.available_quantity <= 0:
                raise Unavailable("Book is not available for checkout")

            # guarded decrement: a concurrent checkout that got here first leaves 0 rows to update
            if not self.books.adjust_availability(book_id, -1):
                raise Unavailable("Book is not available for checkout")

            # on SQLite the decrement took the write lock; a borrower deleted before it is gone now
            if not self.borrowers.get_for_update(borrower_id):
                raise NotFound("Borrower not found")

            borrowing = self.borrowings.add(Borrowing(
                book_id=book_id,
                borrower_id=borrower_id,
                checkout_date=today,
                due_date=due,
                extension_count=0,
            ))
            borrowing_id = borrowing.id

            self.session.commit()
        except IntegrityError as e:
            # partial unique index on active (book_id, borrower_id)
            self._rollback("checkout", e)
            raise Conflict("Borrower already has this book checked out") from e
        except Exception as e:
            self._rollback("checkout", e)
            raise

        current_app.logger.info(
            f"[circulation] checkout borrowing={borrowing_id} book={book_id} "
            f"borrower={borrower_id} due={due.isoformat()}"
        )
        return self._detailed(borrowing_id)

    def validate_checkout(self, book_id: int, borrower_id: int) -> tuple[bool, str | None]:
        """Read-only pre-check, same rules and order as checkout()."""
        book = self.books.get(book_id)
        if not book:
            return False, "Book not found"

        if not self.borrowers.get(borrower_id):
            return False, "Borrower not found"

        if self.borrowings.has_active_borrowing(borrower_id, book_id):
            return False, "Borrower already has this book checked out"

        if book.available_quantity <= 0:
            return False, "Book is not available for checkout"

        return True, None

    # -----------------------------
    # Return
    # -----------------------------
    def return_book(self, borrowing_id: int, return_date=None) -> dict:
        today = self.today()
        returned_on = today if return_date in (None, "") else parse_date(return_date, "return date")

        if returned_on > today:
            raise InvalidInput("Return date cannot be in the future")

        try:
            borrowing = self.borrowings.get_for_update(borrowing_id)
            if not borrowing:
                raise NotFound("Borrowing not found")

            if borrowing.return_date is not None:
                raise AlreadyReturned("Book has already been returned")

            if returned_on < borrowing.checkout_date:
                raise InvalidInput("Return date cannot be before checkout date")

            book_id = borrowing.book_id

            # only one caller can flip return_date from NULL
            if not self.borrowings.mark_returned(borrowing_id, returned_on):
                raise AlreadyReturned("Book has already been returned")

            if book_id is not None and not self.books.adjust_availability(book_id, +1):
                raise Conflict("Book availability would exceed total quantity")

            self.session.commit()
        except Exception as e:
            self._rollback("return", e)
            raise

        current_app.logger.info(
            f"[circulation] return borrowing={borrowing_id} book={book_id} on={returned_on.isoformat()}"
        )
        return self._detailed(borrowing_id)

    # -----------------------------
    # Extend
    # -----------------------------
    def extend_due_date(self, borrowing_id: int, new_due_date, reason: str = None) -> dict:
        if new_due_date in (None, ""):
            raise InvalidInput("Invalid due date format")

        today = self.today()
        new_due = parse_date(new_due_date, "due date")
        if new_due <= today:
            raise InvalidInput("New due date must be in the future")

        try:
            borrowing = self.borrowings.get_for_update(borrowing_id, active_only=True)
            if not borrowing:
                raise NotFound("Active borrowing not found")

            if new_due <= borrowing.due_date:
                raise InvalidInput("New due date must be later than the current due date")

            self.extension_policy.check(borrowing, new_due)

            if not self.borrowings.extend(borrowing_id, new_due, reason):
                raise NotFound("Active borrowing not found")

            self.session.commit()
        except Exception as e:
            self._rollback("extend", e)
            raise

        current_app.logger.info(
            f"[circulation] extend borrowing={borrowing_id} new_due={new_due.isoformat()}"
        )
        return self._detailed(borrowing_id)

    # -----------------------------
    # Queries
    # -----------------------------
    def get_borrowing(self, borrowing_id: int) -> dict:
        return self._detailed(borrowing_id)

    def list_borrowings(
        self,
        borrower_id: int = None,
        book_id: int = None,
        status: str = "all",
        page=1,
        limit=None,
        sort_by: str = "checkout_date",
        sort_order: str = "DESC",
    ) -> dict:
        today = self.today()
        status = status if status in STATUSES else "all"
        page, limit = normalize_page(page, limit, self.default_page_size, self.max_page_size)
        field, order = normalize_sort(sort_by, sort_order, self.borrowings.SORT_FIELDS, "checkout_date")

        q = self.borrowings.query(
            borrower_id=borrower_id,
            book_id=book_id,
            status=status,
            today=today,
            sort_by=field,
            sort_order=order,
        )

        rows, pagination = paginate(q, page, limit)
        return {
            "borrowings": [serialize_borrowing(b, today) for b in rows],
            "pagination": pagination,
        }

    def get_borrowings_by_borrower(self, borrower_id: int, **params) -> dict:
        if not self.borrowers.get(borrower_id):
            raise NotFound("Borrower not found")
        params.pop("book_id", None)
        return self.list_borrowings(borrower_id=borrower_id, **params)

    def get_borrowings_by_book(self, book_id: int, **params) -> dict:
        if not self.books.get(book_id):
            raise NotFound("Book not found")
        params.pop("borrower_id", None)
        return self.list_borrowings(book_id=book_id, **params)

    def get_overdue_borrowings(self) -> dict:
        today = self.today()
        rows = self.borrowings.find_overdue(today)
        return {
            "overdue_borrowings": [serialize_borrowing(b, today) for b in rows],
            "total_overdue": len(rows),
        }

    def get_statistics(self, start_date, end_date) -> dict:
        start = parse_date(start_date, "start date")
        end = parse_date(end_date, "end date")
        if start > end:
            raise InvalidInput("Start date must not be after end date")

        stats = self.borrowings.get_statistics(start, end, self.today())
        return {
            "period": {"start_date": start.isoformat(), "end_date": end.isoformat()},
            "statistics": stats,
        }
