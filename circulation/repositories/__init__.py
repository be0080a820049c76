from circulation.repositories.book_repo import BookRepo
from circulation.repositories.borrower_repo import BorrowerRepo
from circulation.repositories.borrowing_repo import BorrowingRepo

__all__ = ["BookRepo", "BorrowerRepo", "BorrowingRepo"]
