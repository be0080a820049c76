from sqlalchemy import func, literal, or_, select

from circulation.extensions import db
from circulation.models.book import Book
from circulation.models.borrowing import Borrowing


def _open_loans():
    # correlated to the books row being written
    return (
        select(func.count(Borrowing.id))
        .where(Borrowing.book_id == Book.id, Borrowing.return_date.is_(None))
        .scalar_subquery()
    )


class BookRepo:
    SORT_FIELDS = ("title", "author", "isbn", "created_at", "available_quantity")

    def __init__(self, session=None):
        self.session = session or db.session

    def get(self, book_id: int):
        return self.session.get(Book, book_id)

    def get_for_update(self, book_id: int):
        # FOR UPDATE on PostgreSQL/MySQL; ignored by SQLite, which serializes writers
        return (
            self.session.query(Book)
            .filter(Book.id == book_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_by_isbn(self, isbn: str):
        return self.session.query(Book).filter(Book.isbn == isbn).first()

    def query(self, search: str = None, author: str = None):
        q = self.session.query(Book)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(Book.title.ilike(like), Book.author.ilike(like), Book.isbn.ilike(like)))
        if author:
            q = q.filter(Book.author.ilike(f"%{author}%"))
        return q

    def add(self, book: Book):
        self.session.add(book)
        self.session.flush()
        return book

    def delete_unborrowed(self, book_id: int) -> bool:
        """
        DELETE guarded by "no open loan" in the same statement. False means
        the book is gone or a loan is still open; nothing is deleted.
        """
        deleted = (
            self.session.query(Book)
            .filter(Book.id == book_id, _open_loans() == 0)
            .delete(synchronize_session="fetch")
        )
        if deleted:
            # SQLite only honours ON DELETE SET NULL with PRAGMA foreign_keys on
            self.session.query(Borrowing).filter(Borrowing.book_id == book_id).update(
                {Borrowing.book_id: None}, synchronize_session=False
            )
        return deleted == 1

    def isbn_exists(self, isbn: str, exclude_id: int = None) -> bool:
        q = self.session.query(Book.id).filter(Book.isbn == isbn)
        if exclude_id is not None:
            q = q.filter(Book.id != exclude_id)
        return q.first() is not None

    def adjust_availability(self, book_id: int, delta: int) -> bool:
        """
        Single guarded UPDATE: applies delta only if the result stays within
        0..total_quantity. Returns False (nothing written) otherwise.
        """
        updated = (
            self.session.query(Book)
            .filter(
                Book.id == book_id,
                Book.available_quantity + delta >= 0,
                Book.available_quantity + delta <= Book.total_quantity,
            )
            .update(
                {Book.available_quantity: Book.available_quantity + delta},
                synchronize_session=False,
            )
        )
        if updated:
            book = self.session.get(Book, book_id)
            if book is not None:
                self.session.expire(book, ["available_quantity", "updated_at"])
        return updated == 1

    def set_total_quantity(self, book_id: int, total: int) -> bool:
        """
        Sets total_quantity and re-derives available_quantity from the open
        loans in one statement. Refused (False) while more copies are on loan
        than the new total.
        """
        on_loan = _open_loans()
        updated = (
            self.session.query(Book)
            .filter(Book.id == book_id, on_loan <= total)
            .update(
                {
                    Book.total_quantity: total,
                    Book.available_quantity: literal(total) - on_loan,
                },
                synchronize_session=False,
            )
        )
        if updated:
            book = self.session.get(Book, book_id)
            if book is not None:
                self.session.expire(book, ["available_quantity", "total_quantity", "updated_at"])
        return updated == 1

    def find_low_availability(self, threshold: int = 2):
        return (
            self.session.query(Book)
            .filter(Book.available_quantity > 0, Book.available_quantity <= threshold)
            .order_by(Book.available_quantity.asc(), Book.title.asc())
            .all()
        )
