import pytest

from circulation.errors import Conflict, InvalidInput, NotFound
from circulation.extensions import db
from circulation.models import Borrowing
from circulation.repositories import BookRepo


def test_create_book_defaults_total_to_available(services):
    book = services.books.create_book({
        "title": "Sapiens", "author": "Yuval Noah Harari",
        "isbn": "978-0-09-959008-8", "available_quantity": 3,
    })
    assert book.isbn == "9780099590088"
    assert book.total_quantity == 3


@pytest.mark.parametrize("data", [
    {"title": "T", "author": "A", "isbn": "12345", "available_quantity": 1},
    {"title": "T", "author": "A", "isbn": "1234567890", "available_quantity": 3, "total_quantity": 2},
    {"title": "T", "author": "A", "isbn": "1234567890", "available_quantity": 1, "total_quantity": 2},
    {"title": "T", "author": "A", "isbn": "1234567890", "available_quantity": -1},
    {"title": "", "author": "A", "isbn": "1234567890"},
])
def test_create_book_rejects_bad_input(services, data):
    with pytest.raises(InvalidInput):
        services.books.create_book(data)


def test_duplicate_isbn(services, make_book):
    book = make_book()
    with pytest.raises(Conflict, match="ISBN already exists"):
        services.books.create_book({"title": "Other", "author": "A", "isbn": book.isbn})


def test_update_isbn_conflict_excludes_self(services, make_book):
    first = make_book()
    second = make_book()

    services.books.update_book(first.id, {"isbn": first.isbn, "title": "Renamed"})
    assert services.books.get_book(first.id).title == "Renamed"

    with pytest.raises(Conflict):
        services.books.update_book(second.id, {"isbn": first.isbn})


def test_update_rederives_availability_from_open_loans(services, make_book, make_borrower, assert_consistent):
    book = make_book(available=2)
    services.circulation.checkout(book.id, make_borrower().id)

    with pytest.raises(InvalidInput, match="on loan"):
        services.books.update_book(book.id, {"total_quantity": 0})
    # one copy is on loan, so only one can be on the shelf
    with pytest.raises(InvalidInput, match="on loan"):
        services.books.update_book(book.id, {"available_quantity": 2})

    updated = services.books.update_book(book.id, {"total_quantity": 5})
    assert (updated.available_quantity, updated.total_quantity) == (4, 5)
    assert_consistent(book.id)

    services.books.update_book(book.id, {"available_quantity": 2, "total_quantity": 3})
    assert_consistent(book.id)


def test_title_edit_keeps_counts(services, make_book, make_borrower, assert_consistent):
    book = make_book(available=3)
    services.circulation.checkout(book.id, make_borrower().id)

    updated = services.books.update_book(book.id, {"title": "Second edition"})
    assert updated.title == "Second edition"
    assert (updated.available_quantity, updated.total_quantity) == (2, 3)
    assert_consistent(book.id)


def test_delete_blocked_by_active_borrowing(services, make_book, make_borrower):
    book = make_book()
    b = services.circulation.checkout(book.id, make_borrower().id)

    with pytest.raises(Conflict, match="active borrowings"):
        services.books.delete_book(book.id)

    services.circulation.return_book(b["id"])
    assert services.books.delete_book(book.id) is True

    with pytest.raises(NotFound):
        services.books.get_book(book.id)

    # the loan itself survives as history
    db.session.expire_all()
    row = db.session.get(Borrowing, b["id"])
    assert row is not None
    assert row.book_id is None
    assert row.return_date is not None


def test_delete_by_isbn(services, make_book):
    book = make_book()
    isbn = book.isbn
    services.books.delete_book_by_isbn(isbn)
    with pytest.raises(NotFound):
        services.books.get_book_by_isbn(isbn)


def test_low_availability_ordered_by_scarcity(services, make_book):
    make_book(available=0, title="Gone")
    two = make_book(available=2, title="B two")
    one = make_book(available=1, title="Z one")
    also_two = make_book(available=2, title="A two")
    make_book(available=5, title="Plenty")

    books = services.books.get_low_availability_books(2)
    assert [b.id for b in books] == [one.id, also_two.id, two.id]

    assert [b.id for b in services.books.get_low_availability_books(1)] == [one.id]


def test_adjust_availability_guard(app, make_book):
    repo = BookRepo()
    book = make_book(available=2)

    assert repo.adjust_availability(book.id, -2) is True
    assert repo.adjust_availability(book.id, -1) is False
    assert repo.adjust_availability(book.id, +3) is False
    assert repo.adjust_availability(book.id, +2) is True
    assert repo.adjust_availability(book.id, +1) is False
    db.session.commit()

    db.session.expire_all()
    assert repo.get(book.id).available_quantity == 2


def test_list_books_search_and_pagination(services, make_book):
    make_book(title="The Hobbit", author="Tolkien")
    make_book(title="Silmarillion", author="Tolkien")
    make_book(title="Dune", author="Herbert")

    result = services.books.list_books(author="tolk")
    assert [b["title"] for b in result["books"]] == ["Silmarillion", "The Hobbit"]

    result = services.books.list_books(search="dune")
    assert result["pagination"]["total"] == 1

    result = services.books.list_books(limit=2, page=2)
    assert result["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}


def test_is_book_available(services, make_book, make_borrower):
    book = make_book(available=1)
    assert services.books.is_book_available(book.id)
    services.circulation.checkout(book.id, make_borrower().id)
    assert not services.books.is_book_available(book.id)
