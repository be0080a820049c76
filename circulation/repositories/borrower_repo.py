from sqlalchemy import func, or_, select

from circulation.extensions import db
from circulation.models.borrower import Borrower
from circulation.models.borrowing import Borrowing


class BorrowerRepo:
    SORT_FIELDS = ("name", "email", "registered_date", "created_at")

    def __init__(self, session=None):
        self.session = session or db.session

    def get(self, borrower_id: int):
        return self.session.get(Borrower, borrower_id)

    def get_for_update(self, borrower_id: int):
        return (
            self.session.query(Borrower)
            .filter(Borrower.id == borrower_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_by_email(self, email: str):
        return self.session.query(Borrower).filter(Borrower.email == email).first()

    def query(self, search: str = None):
        q = self.session.query(Borrower)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(Borrower.name.ilike(like), Borrower.email.ilike(like)))
        return q

    def add(self, borrower: Borrower):
        self.session.add(borrower)
        self.session.flush()
        return borrower

    def delete_unborrowed(self, borrower_id: int) -> bool:
        """Same contract as BookRepo.delete_unborrowed, for borrowers."""
        open_loan = (
            select(Borrowing.id)
            .where(Borrowing.borrower_id == Borrower.id, Borrowing.return_date.is_(None))
            .exists()
        )
        deleted = (
            self.session.query(Borrower)
            .filter(Borrower.id == borrower_id, ~open_loan)
            .delete(synchronize_session="fetch")
        )
        if deleted:
            self.session.query(Borrowing).filter(Borrowing.borrower_id == borrower_id).update(
                {Borrowing.borrower_id: None}, synchronize_session=False
            )
        return deleted == 1

    def email_exists(self, email: str, exclude_id: int = None) -> bool:
        q = self.session.query(Borrower.id).filter(Borrower.email == email)
        if exclude_id is not None:
            q = q.filter(Borrower.id != exclude_id)
        return q.first() is not None

    def find_with_overdue(self, today):
        overdue_count = func.count(Borrowing.id).label("overdue_count")
        return (
            self.session.query(Borrower.id, Borrower.name, Borrower.email, overdue_count)
            .join(Borrowing, Borrowing.borrower_id == Borrower.id)
            .filter(Borrowing.return_date.is_(None), Borrowing.due_date < today)
            .group_by(Borrower.id, Borrower.name, Borrower.email)
            .order_by(overdue_count.desc(), Borrower.name.asc())
            .all()
        )
