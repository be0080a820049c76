from datetime import datetime
from circulation.extensions import db


class Borrowing(db.Model):
    __tablename__ = "borrowings"

    id = db.Column(db.Integer, primary_key=True)

    # SET NULL: history rows outlive a deleted book/borrower
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="SET NULL"), nullable=True, index=True)
    borrower_id = db.Column(db.Integer, db.ForeignKey("borrowers.id", ondelete="SET NULL"), nullable=True, index=True)

    checkout_date = db.Column(db.Date, nullable=False, index=True)
    due_date = db.Column(db.Date, nullable=False, index=True)
    return_date = db.Column(db.Date, nullable=True)  # NULL = active

    extension_count = db.Column(db.Integer, nullable=False, default=0)
    extension_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    book = db.relationship("Book", backref="borrowings")
    borrower = db.relationship("Borrower", backref="borrowings")

    __table_args__ = (
        db.CheckConstraint("due_date >= checkout_date", name="borrowings_due_date_check"),
        db.CheckConstraint(
            "return_date IS NULL OR return_date >= checkout_date",
            name="borrowings_return_date_check",
        ),
        db.CheckConstraint("extension_count >= 0", name="borrowings_extension_count_check"),
        # one active loan per (book, borrower)
        db.Index(
            "uq_borrowings_active_loan",
            "book_id",
            "borrower_id",
            unique=True,
            sqlite_where=db.text("return_date IS NULL"),
            postgresql_where=db.text("return_date IS NULL"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.return_date is None
