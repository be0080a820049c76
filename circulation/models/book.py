from datetime import datetime
from circulation.extensions import db


class Book(db.Model):
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    author = db.Column(db.String(255), nullable=False, index=True)
    isbn = db.Column(db.String(13), unique=True, nullable=False, index=True)

    available_quantity = db.Column(db.Integer, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)

    shelf_location = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("available_quantity >= 0", name="books_quantity_check"),
        db.CheckConstraint("total_quantity >= 0", name="books_total_quantity_check"),
        db.CheckConstraint("available_quantity <= total_quantity", name="books_available_lte_total"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "available_quantity": self.available_quantity,
            "total_quantity": self.total_quantity,
            "shelf_location": self.shelf_location,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
