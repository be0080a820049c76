import itertools
from datetime import date

import pytest

from circulation import create_app
from circulation.extensions import db
from circulation.models import Book, Borrowing


class Clock:
    """Mutable 'today' so overdue scenarios can move time forward."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock():
    return Clock(date(2024, 1, 10))


@pytest.fixture
def app(tmp_path, clock):
    # one SQLite file per test
    class TestConfig:
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'circulation_test.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}
        AUTO_CREATE_TABLES = True
        SCHEDULER_ENABLED = False

    app = create_app(TestConfig, today=clock)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def services(app):
    return app.extensions["circulation"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_book(services):
    counter = itertools.count(1)

    def _make(available=1, title=None, author="Test Author"):
        n = next(counter)
        return services.books.create_book({
            "title": title or f"Book {n}",
            "author": author,
            "isbn": f"978{n:010d}",
            "available_quantity": available,
        })

    return _make


@pytest.fixture
def make_borrower(services):
    counter = itertools.count(1)

    def _make(name=None):
        n = next(counter)
        return services.borrowers.create_borrower({
            "name": name or f"Borrower {n}",
            "email": f"borrower{n}@example.com",
        })

    return _make


@pytest.fixture
def assert_consistent():
    def _check(book_id):
        db.session.expire_all()
        book = db.session.get(Book, book_id)
        active = db.session.query(Borrowing).filter(
            Borrowing.book_id == book_id,
            Borrowing.return_date.is_(None),
        ).count()
        assert 0 <= book.available_quantity <= book.total_quantity
        assert book.available_quantity == book.total_quantity - active

    return _check
