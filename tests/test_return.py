from datetime import date

import pytest

from circulation.errors import AlreadyReturned, Conflict, InvalidInput, NotFound
from circulation.extensions import db
from circulation.models import Borrowing


@pytest.fixture
def loan(services, make_book, make_borrower):
    book = make_book(available=2)
    borrower = make_borrower()
    return services.circulation.checkout(book.id, borrower.id)


def test_return_restores_availability(services, loan, assert_consistent, clock):
    before = services.books.get_book(loan["book_id"]).available_quantity

    r = services.circulation.return_book(loan["id"])

    assert r["return_date"] == clock.today.isoformat()
    assert r["status"] == "returned"
    assert services.books.get_book(loan["book_id"]).available_quantity == before + 1
    assert_consistent(loan["book_id"])


def test_checkout_then_return_round_trip(services, make_book, make_borrower):
    book = make_book(available=3)
    start = services.books.get_book(book.id).available_quantity

    b = services.circulation.checkout(book.id, make_borrower().id)
    services.circulation.return_book(b["id"])

    assert services.books.get_book(book.id).available_quantity == start


def test_second_return_fails(services, loan, assert_consistent):
    services.circulation.return_book(loan["id"])
    available = services.books.get_book(loan["book_id"]).available_quantity

    with pytest.raises(AlreadyReturned, match="already been returned"):
        services.circulation.return_book(loan["id"])

    assert services.books.get_book(loan["book_id"]).available_quantity == available
    assert_consistent(loan["book_id"])


def test_already_returned_is_a_conflict(services, loan):
    services.circulation.return_book(loan["id"])
    with pytest.raises(Conflict):
        services.circulation.return_book(loan["id"])


def test_return_unknown_borrowing(services):
    with pytest.raises(NotFound):
        services.circulation.return_book(12345)


def test_explicit_return_date(services, loan, clock):
    clock.today = date(2024, 1, 20)
    r = services.circulation.return_book(loan["id"], "2024-01-15")
    assert r["return_date"] == "2024-01-15"


def test_return_date_bounds(services, loan, assert_consistent):
    with pytest.raises(InvalidInput, match="before checkout"):
        services.circulation.return_book(loan["id"], "2024-01-01")
    with pytest.raises(InvalidInput, match="future"):
        services.circulation.return_book(loan["id"], "2024-02-01")

    assert services.circulation.get_borrowing(loan["id"])["return_date"] is None
    assert_consistent(loan["book_id"])


def test_returned_loan_keeps_its_history(services, loan):
    r = services.circulation.return_book(loan["id"])
    assert r["checkout_date"] == loan["checkout_date"]
    assert r["due_date"] == loan["due_date"]
    assert r["book"] == loan["book"]
    assert r["borrower"] == loan["borrower"]


def test_returned_loan_is_no_longer_active(services, loan):
    row = db.session.get(Borrowing, loan["id"])
    assert row.is_active

    services.circulation.return_book(loan["id"])

    db.session.expire_all()
    row = db.session.get(Borrowing, loan["id"])
    assert not row.is_active
    assert services.circulation.get_borrowing(loan["id"])["status"] == "returned"
