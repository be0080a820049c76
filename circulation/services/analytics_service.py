from circulation.errors import InvalidInput
from circulation.utils.dates import parse_date


class AnalyticsService:
    def __init__(self, circulation, books, borrowers, borrowings):
        self.circulation = circulation
        self.books = books
        self.borrowers = borrowers
        self.borrowings = borrowings

    def get_borrowing_analytics(self, start_date, end_date) -> dict:
        stats = self.circulation.get_statistics(start_date, end_date)
        overdue = self.circulation.get_overdue_borrowings()
        stats["overdue_details"] = [
            {
                "borrowing_id": b["id"],
                "book_title": b["book"]["title"] if b["book"] else None,
                "borrower_name": b["borrower"]["name"] if b["borrower"] else None,
                "borrower_email": b["borrower"]["email"] if b["borrower"] else None,
                "due_date": b["due_date"],
                "days_overdue": b["days_overdue"],
            }
            for b in overdue["overdue_borrowings"]
        ]
        return stats

    def get_popular_books(self, start_date=None, end_date=None, limit: int = 10) -> list:
        start = parse_date(start_date, "start date") if start_date else None
        end = parse_date(end_date, "end date") if end_date else None
        if start and end and start > end:
            raise InvalidInput("Start date must not be after end date")

        rows = self.borrowings.popular_books(start, end, max(1, int(limit)))
        return [
            {
                "book_id": r.id,
                "title": r.title,
                "author": r.author,
                "isbn": r.isbn,
                "borrow_count": int(r.borrow_count),
            }
            for r in rows
        ]

    def get_summary(self, start_date, end_date) -> dict:
        return {
            "borrowings": self.get_borrowing_analytics(start_date, end_date),
            "low_availability_books": [b.to_dict() for b in self.books.get_low_availability_books()],
            "borrowers_with_overdue": self.borrowers.get_borrowers_with_overdue(),
            "popular_books": self.get_popular_books(start_date, end_date),
        }
