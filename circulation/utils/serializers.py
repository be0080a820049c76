from datetime import date

from circulation.models.borrowing import Borrowing
from circulation.utils.dates import iso


def overdue_days(borrowing: Borrowing, today: date) -> int:
    if not borrowing.is_active or borrowing.due_date is None:
        return 0
    if borrowing.due_date >= today:
        return 0
    return (today - borrowing.due_date).days


def borrowing_status(borrowing: Borrowing, today: date) -> str:
    if not borrowing.is_active:
        return "returned"
    if overdue_days(borrowing, today) > 0:
        return "overdue"
    return "active"


def serialize_borrowing(borrowing: Borrowing, today: date) -> dict:
    book = borrowing.book
    borrower = borrowing.borrower
    days = overdue_days(borrowing, today)

    return {
        "id": borrowing.id,
        "book_id": borrowing.book_id,
        "borrower_id": borrowing.borrower_id,
        "checkout_date": iso(borrowing.checkout_date),
        "due_date": iso(borrowing.due_date),
        "return_date": iso(borrowing.return_date),
        "extension_count": borrowing.extension_count or 0,
        "extension_reason": borrowing.extension_reason,
        "created_at": iso(borrowing.created_at),
        "updated_at": iso(borrowing.updated_at),
        "book": {
            "title": book.title,
            "author": book.author,
            "isbn": book.isbn,
        } if book else None,
        "borrower": {
            "name": borrower.name,
            "email": borrower.email,
        } if borrower else None,
        "status": borrowing_status(borrowing, today),
        "is_overdue": days > 0,
        "days_overdue": days,
    }
