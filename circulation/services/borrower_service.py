import re

from flask import current_app

from circulation.errors import CirculationError, Conflict, InvalidInput, NotFound
from circulation.extensions import db
from circulation.models.borrower import Borrower
from circulation.utils.dates import parse_date
from circulation.utils.pagination import normalize_page, normalize_sort, paginate
from circulation.utils.serializers import serialize_borrowing

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def normalize_email(email) -> str:
    value = str(email or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise InvalidInput("Invalid email format")
    return value


class BorrowerService:
    def __init__(self, borrowers, borrowings, circulation, session=None,
                 default_page_size: int = 10, max_page_size: int = 100):
        self.borrowers = borrowers
        self.borrowings = borrowings
        self.circulation = circulation
        self.session = session or db.session
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _commit(self, op: str):
        try:
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            current_app.logger.exception(f"[borrowers] {op} failed: {e}")
            raise

    def get_borrower(self, borrower_id: int) -> Borrower:
        borrower = self.borrowers.get(borrower_id)
        if not borrower:
            raise NotFound("Borrower not found")
        return borrower

    def get_borrower_by_email(self, email: str) -> Borrower:
        borrower = self.borrowers.get_by_email(normalize_email(email))
        if not borrower:
            raise NotFound("Borrower not found")
        return borrower

    def list_borrowers(self, search: str = None, page=1, limit=None,
                       sort_by: str = "name", sort_order: str = "ASC") -> dict:
        page, limit = normalize_page(page, limit, self.default_page_size, self.max_page_size)
        field, order = normalize_sort(sort_by, sort_order, self.borrowers.SORT_FIELDS, "name", "ASC")

        column = getattr(Borrower, field)
        q = self.borrowers.query(search=search)
        q = q.order_by(column.asc() if order == "ASC" else column.desc(), Borrower.id.asc())

        rows, pagination = paginate(q, page, limit)
        return {"borrowers": [b.to_dict() for b in rows], "pagination": pagination}

    def create_borrower(self, data: dict) -> Borrower:
        name = (data.get("name") or "").strip()
        if not name:
            raise InvalidInput("name is required")

        email = normalize_email(data.get("email"))
        if self.borrowers.email_exists(email):
            raise Conflict("Borrower with this email already exists")

        registered = data.get("registered_date")
        borrower = Borrower(
            name=name,
            email=email,
            registered_date=parse_date(registered, "registered date") if registered else self.circulation.today(),
        )
        self.borrowers.add(borrower)
        self._commit("create")
        current_app.logger.info(f"[borrowers] created borrower={borrower.id}")
        return borrower

    def update_borrower(self, borrower_id: int, data: dict) -> Borrower:
        borrower = self.get_borrower(borrower_id)

        if data.get("email") is not None:
            email = normalize_email(data["email"])
            if email != borrower.email and self.borrowers.email_exists(email, exclude_id=borrower_id):
                raise Conflict("Borrower with this email already exists")
            borrower.email = email

        if data.get("name") is not None:
            name = str(data["name"]).strip()
            if not name:
                raise InvalidInput("name cannot be empty")
            borrower.name = name

        self._commit("update")
        return borrower

    def delete_borrower(self, borrower_id: int):
        try:
            if not self.borrowers.get_for_update(borrower_id):
                raise NotFound("Borrower not found")
            # the open-loan check runs inside the DELETE
            if not self.borrowers.delete_unborrowed(borrower_id):
                raise Conflict("Cannot delete borrower with active borrowings")
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            if isinstance(e, CirculationError):
                current_app.logger.warning(f"[borrowers] delete refused: {e.message}")
            else:
                current_app.logger.exception(f"[borrowers] delete failed: {e}")
            raise

        current_app.logger.info(f"[borrowers] deleted borrower={borrower_id}")
        return True

    def get_current_books(self, borrower_id: int) -> list:
        self.get_borrower(borrower_id)
        today = self.circulation.today()
        return [serialize_borrowing(b, today) for b in self.borrowings.find_active_by_borrower(borrower_id)]

    def get_overdue_books(self, borrower_id: int) -> list:
        self.get_borrower(borrower_id)
        today = self.circulation.today()
        return [serialize_borrowing(b, today) for b in self.borrowings.find_overdue_by_borrower(borrower_id, today)]

    def get_borrowing_history(self, borrower_id: int, status: str = "all", page=1, limit=None) -> dict:
        return self.circulation.get_borrowings_by_borrower(
            borrower_id, status=status, page=page, limit=limit,
        )

    def get_borrowers_with_overdue(self) -> list:
        rows = self.borrowers.find_with_overdue(self.circulation.today())
        return [
            {"id": r.id, "name": r.name, "email": r.email, "overdue_count": int(r.overdue_count)}
            for r in rows
        ]
