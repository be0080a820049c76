from datetime import date

import pytest

from circulation.errors import Conflict, InvalidInput, NotFound
from circulation.extensions import db
from circulation.models import Borrowing


def test_create_normalizes_email(services, clock):
    b = services.borrowers.create_borrower({"name": "Ada", "email": "  Ada@Example.COM "})
    assert b.email == "ada@example.com"
    assert b.registered_date == clock.today


@pytest.mark.parametrize("email", ["", "ada", "ada@", "ada@example", "a b@example.com"])
def test_invalid_email(services, email):
    with pytest.raises(InvalidInput):
        services.borrowers.create_borrower({"name": "Ada", "email": email})


def test_duplicate_email(services, make_borrower):
    b = make_borrower()
    with pytest.raises(Conflict):
        services.borrowers.create_borrower({"name": "Someone", "email": b.email.upper()})


def test_update_email_conflict(services, make_borrower):
    a = make_borrower()
    b = make_borrower()

    services.borrowers.update_borrower(a.id, {"email": a.email, "name": "Renamed"})
    assert services.borrowers.get_borrower(a.id).name == "Renamed"

    with pytest.raises(Conflict):
        services.borrowers.update_borrower(b.id, {"email": a.email})


def test_find_by_email(services, make_borrower):
    b = make_borrower()
    assert services.borrowers.get_borrower_by_email(b.email).id == b.id
    with pytest.raises(NotFound):
        services.borrowers.get_borrower_by_email("nobody@example.com")


def test_delete_blocked_by_active_borrowing(services, make_book, make_borrower):
    borrower = make_borrower()
    loan = services.circulation.checkout(make_book().id, borrower.id)

    with pytest.raises(Conflict, match="active borrowings"):
        services.borrowers.delete_borrower(borrower.id)

    services.circulation.return_book(loan["id"])
    assert services.borrowers.delete_borrower(borrower.id) is True
    with pytest.raises(NotFound):
        services.borrowers.get_borrower(borrower.id)

    db.session.expire_all()
    history = db.session.get(Borrowing, loan["id"])
    assert history.borrower_id is None
    assert history.book_id is not None


def test_current_books_and_history(services, make_book, make_borrower, clock):
    borrower = make_borrower()
    first = services.circulation.checkout(make_book().id, borrower.id)
    second = services.circulation.checkout(make_book().id, borrower.id)
    services.circulation.return_book(first["id"])

    current = services.borrowers.get_current_books(borrower.id)
    assert [b["id"] for b in current] == [second["id"]]

    history = services.borrowers.get_borrowing_history(borrower.id)
    assert history["pagination"]["total"] == 2

    returned = services.borrowers.get_borrowing_history(borrower.id, status="returned")
    assert [b["id"] for b in returned["borrowings"]] == [first["id"]]

    with pytest.raises(NotFound):
        services.borrowers.get_current_books(999)


def test_overdue_books_and_borrowers_with_overdue(services, make_book, make_borrower, clock):
    late = make_borrower(name="Late")
    later = make_borrower(name="Later")
    on_time = make_borrower(name="On time")

    services.circulation.checkout(make_book().id, late.id, "2024-01-12")
    services.circulation.checkout(make_book().id, later.id, "2024-01-12")
    services.circulation.checkout(make_book().id, later.id, "2024-01-15")
    services.circulation.checkout(make_book().id, on_time.id, "2024-03-01")

    clock.today = date(2024, 1, 20)

    overdue = services.borrowers.get_overdue_books(later.id)
    assert [b["days_overdue"] for b in overdue] == [8, 5]

    rows = services.borrowers.get_borrowers_with_overdue()
    assert [(r["name"], r["overdue_count"]) for r in rows] == [("Later", 2), ("Late", 1)]


def test_list_borrowers_search(services, make_borrower):
    make_borrower(name="Grace Hopper")
    make_borrower(name="Alan Turing")

    result = services.borrowers.list_borrowers(search="grace")
    assert [b["name"] for b in result["borrowers"]] == ["Grace Hopper"]
    assert services.borrowers.list_borrowers()["pagination"]["total"] == 2
