from circulation.models.book import Book
from circulation.models.borrower import Borrower
from circulation.models.borrowing import Borrowing

__all__ = ["Book", "Borrower", "Borrowing"]
