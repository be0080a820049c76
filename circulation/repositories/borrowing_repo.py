from datetime import date

from sqlalchemy import case, func
from sqlalchemy.orm import joinedload

from circulation.extensions import db
from circulation.models.book import Book
from circulation.models.borrowing import Borrowing

STATUSES = ("all", "active", "returned", "overdue")


class BorrowingRepo:
    SORT_FIELDS = ("checkout_date", "due_date", "return_date")

    def __init__(self, session=None):
        self.session = session or db.session

    def _with_details(self):
        return self.session.query(Borrowing).options(
            joinedload(Borrowing.book),
            joinedload(Borrowing.borrower),
        )

    def get(self, borrowing_id: int):
        return self._with_details().filter(Borrowing.id == borrowing_id).first()

    def get_for_update(self, borrowing_id: int, active_only: bool = False):
        q = self.session.query(Borrowing).filter(Borrowing.id == borrowing_id)
        if active_only:
            q = q.filter(Borrowing.return_date.is_(None))
        return q.with_for_update().populate_existing().first()

    def add(self, borrowing: Borrowing):
        self.session.add(borrowing)
        self.session.flush()
        return borrowing

    def has_active_borrowing(self, borrower_id: int, book_id: int) -> bool:
        return self.session.query(Borrowing.id).filter(
            Borrowing.borrower_id == borrower_id,
            Borrowing.book_id == book_id,
            Borrowing.return_date.is_(None),
        ).first() is not None

    def count_active_for_book(self, book_id: int) -> int:
        return self.session.query(Borrowing).filter(
            Borrowing.book_id == book_id,
            Borrowing.return_date.is_(None),
        ).count()

    def mark_returned(self, borrowing_id: int, return_date: date) -> bool:
        """Closes the loan only if it is still open; False means someone else closed it."""
        updated = (
            self.session.query(Borrowing)
            .filter(Borrowing.id == borrowing_id, Borrowing.return_date.is_(None))
            .update({Borrowing.return_date: return_date}, synchronize_session=False)
        )
        return updated == 1

    def extend(self, borrowing_id: int, new_due_date: date, reason: str = None) -> bool:
        updated = (
            self.session.query(Borrowing)
            .filter(Borrowing.id == borrowing_id, Borrowing.return_date.is_(None))
            .update(
                {
                    Borrowing.due_date: new_due_date,
                    Borrowing.extension_count: func.coalesce(Borrowing.extension_count, 0) + 1,
                    Borrowing.extension_reason: reason,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def query(self, borrower_id: int = None, book_id: int = None, status: str = "all", today: date = None,
              sort_by: str = None, sort_order: str = "DESC"):
        today = today or date.today()
        q = self._with_details()

        if borrower_id:
            q = q.filter(Borrowing.borrower_id == borrower_id)
        if book_id:
            q = q.filter(Borrowing.book_id == book_id)

        if status == "active":
            q = q.filter(Borrowing.return_date.is_(None))
        elif status == "returned":
            q = q.filter(Borrowing.return_date.isnot(None))
        elif status == "overdue":
            q = q.filter(Borrowing.return_date.is_(None), Borrowing.due_date < today)

        if sort_by in self.SORT_FIELDS:
            column = getattr(Borrowing, sort_by)
            if sort_order == "ASC":
                q = q.order_by(column.asc(), Borrowing.id.asc())
            else:
                q = q.order_by(column.desc(), Borrowing.id.desc())
        return q

    def find_overdue(self, today: date):
        return (
            self.query(status="overdue", today=today)
            .order_by(Borrowing.due_date.asc(), Borrowing.id.asc())
            .all()
        )

    def find_active_by_borrower(self, borrower_id: int):
        return (
            self.query(borrower_id=borrower_id, status="active")
            .order_by(Borrowing.checkout_date.desc(), Borrowing.id.desc())
            .all()
        )

    def find_overdue_by_borrower(self, borrower_id: int, today: date):
        return (
            self.query(borrower_id=borrower_id, status="overdue", today=today)
            .order_by(Borrowing.due_date.asc(), Borrowing.id.asc())
            .all()
        )

    def get_statistics(self, start_date: date, end_date: date, today: date) -> dict:
        active = Borrowing.return_date.is_(None)
        row = (
            self.session.query(
                func.count(Borrowing.id),
                func.count(case((Borrowing.return_date.isnot(None), 1))),
                func.count(case((active, 1))),
                func.count(case((active & (Borrowing.due_date < today), 1))),
            )
            .filter(Borrowing.checkout_date >= start_date, Borrowing.checkout_date <= end_date)
            .one()
        )
        return {
            "total_borrowings": int(row[0] or 0),
            "returned_books": int(row[1] or 0),
            "active_borrowings": int(row[2] or 0),
            "overdue_books": int(row[3] or 0),
        }

    def popular_books(self, start_date: date = None, end_date: date = None, limit: int = 10):
        borrow_count = func.count(Borrowing.id).label("borrow_count")
        q = (
            self.session.query(Book.id, Book.title, Book.author, Book.isbn, borrow_count)
            .join(Borrowing, Borrowing.book_id == Book.id)
        )
        if start_date:
            q = q.filter(Borrowing.checkout_date >= start_date)
        if end_date:
            q = q.filter(Borrowing.checkout_date <= end_date)
        return (
            q.group_by(Book.id, Book.title, Book.author, Book.isbn)
            .order_by(borrow_count.desc(), Book.title.asc())
            .limit(limit)
            .all()
        )
