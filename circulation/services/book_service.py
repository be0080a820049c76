import re

from flask import current_app

from circulation.errors import CirculationError, Conflict, InvalidInput, NotFound
from circulation.extensions import db
from circulation.models.book import Book
from circulation.utils.pagination import normalize_page, normalize_sort, paginate

ISBN_RE = re.compile(r"^(\d{10}|\d{13})$")


def normalize_isbn(isbn) -> str:
    value = re.sub(r"[\s-]", "", str(isbn or ""))
    if not ISBN_RE.match(value):
        raise InvalidInput("ISBN must be 10 or 13 digits")
    return value


def _quantity(value, field: str) -> int:
    try:
        q = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be an integer")
    if q < 0:
        raise InvalidInput(f"{field} cannot be negative")
    return q


class BookService:
    def __init__(self, books, borrowings, session=None, low_availability_threshold: int = 2,
                 default_page_size: int = 10, max_page_size: int = 100):
        self.books = books
        self.borrowings = borrowings
        self.session = session or db.session
        self.low_availability_threshold = low_availability_threshold
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _commit(self, op: str):
        try:
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            current_app.logger.exception(f"[books] {op} failed: {e}")
            raise

    def _rollback(self, op: str, e: Exception):
        self.session.rollback()
        if isinstance(e, CirculationError):
            current_app.logger.warning(f"[books] {op} refused: {e.message}")
        else:
            current_app.logger.exception(f"[books] {op} failed: {e}")

    def get_book(self, book_id: int) -> Book:
        book = self.books.get(book_id)
        if not book:
            raise NotFound("Book not found")
        return book

    def get_book_by_isbn(self, isbn: str) -> Book:
        book = self.books.get_by_isbn(normalize_isbn(isbn))
        if not book:
            raise NotFound("Book not found")
        return book

    def list_books(self, search: str = None, author: str = None, page=1, limit=None,
                   sort_by: str = "title", sort_order: str = "ASC") -> dict:
        page, limit = normalize_page(page, limit, self.default_page_size, self.max_page_size)
        field, order = normalize_sort(sort_by, sort_order, self.books.SORT_FIELDS, "title", "ASC")

        column = getattr(Book, field)
        q = self.books.query(search=search, author=author)
        q = q.order_by(column.asc() if order == "ASC" else column.desc(), Book.id.asc())

        rows, pagination = paginate(q, page, limit)
        return {"books": [b.to_dict() for b in rows], "pagination": pagination}

    def create_book(self, data: dict) -> Book:
        title = (data.get("title") or "").strip()
        author = (data.get("author") or "").strip()
        if not title or not author:
            raise InvalidInput("title and author are required")

        isbn = normalize_isbn(data.get("isbn"))
        available = _quantity(data.get("available_quantity", data.get("total_quantity", 0)), "available_quantity")
        total = _quantity(data.get("total_quantity", available), "total_quantity")
        # nothing is on loan yet
        if available != total:
            raise InvalidInput("A new book must have every copy available")

        if self.books.isbn_exists(isbn):
            raise Conflict("Book with this ISBN already exists")

        book = Book(
            title=title,
            author=author,
            isbn=isbn,
            available_quantity=available,
            total_quantity=total,
            shelf_location=data.get("shelf_location"),
        )
        self.books.add(book)
        self._commit("create")
        current_app.logger.info(f"[books] created book={book.id} isbn={isbn}")
        return book

    def update_book(self, book_id: int, data: dict) -> Book:
        """
        available_quantity is never written directly: it is re-derived as
        total_quantity minus the open loans inside the UPDATE itself, so a
        checkout committing meanwhile cannot be overwritten.
        """
        try:
            book = self.books.get_for_update(book_id)
            if not book:
                raise NotFound("Book not found")

            if data.get("isbn") is not None:
                isbn = normalize_isbn(data["isbn"])
                if isbn != book.isbn and self.books.isbn_exists(isbn, exclude_id=book_id):
                    raise Conflict("Book with this ISBN already exists")
            else:
                isbn = book.isbn

            changes = {}
            for k in ["title", "author"]:
                if data.get(k) is not None:
                    value = str(data[k]).strip()
                    if not value:
                        raise InvalidInput(f"{k} cannot be empty")
                    changes[k] = value

            total = book.total_quantity
            if data.get("total_quantity") is not None:
                total = _quantity(data["total_quantity"], "total_quantity")

            on_loan = self.borrowings.count_active_for_book(book_id)
            if total < on_loan:
                raise InvalidInput(f"Total quantity cannot be less than {on_loan} copies on loan")
            if data.get("available_quantity") is not None:
                available = _quantity(data["available_quantity"], "available_quantity")
                if available != total - on_loan:
                    raise InvalidInput(
                        f"Available quantity must equal total quantity minus {on_loan} copies on loan"
                    )

            if not self.books.set_total_quantity(book_id, total):
                raise Conflict("Total quantity cannot be less than the copies on loan")

            for k, value in changes.items():
                setattr(book, k, value)
            if "shelf_location" in data:
                book.shelf_location = data["shelf_location"]
            book.isbn = isbn

            self.session.commit()
        except Exception as e:
            self._rollback("update", e)
            raise
        return book

    def _delete(self, book_id: int):
        try:
            if not self.books.get_for_update(book_id):
                raise NotFound("Book not found")
            # the open-loan check runs inside the DELETE
            if not self.books.delete_unborrowed(book_id):
                raise Conflict("Cannot delete book with active borrowings")
            self.session.commit()
        except Exception as e:
            self._rollback("delete", e)
            raise

        current_app.logger.info(f"[books] deleted book={book_id}")
        return True

    def delete_book(self, book_id: int):
        return self._delete(book_id)

    def delete_book_by_isbn(self, isbn: str):
        return self._delete(self.get_book_by_isbn(isbn).id)

    def get_low_availability_books(self, threshold: int = None):
        threshold = self.low_availability_threshold if threshold is None else int(threshold)
        return self.books.find_low_availability(threshold)

    def is_book_available(self, book_id: int) -> bool:
        return self.get_book(book_id).available_quantity > 0
