from circulation.repositories import BookRepo, BorrowerRepo, BorrowingRepo
from circulation.services.analytics_service import AnalyticsService
from circulation.services.book_service import BookService
from circulation.services.borrower_service import BorrowerService
from circulation.services.circulation_service import CirculationService
from circulation.services.extension_policy import ExtensionPolicy


class Services:
    """Explicitly wired service bundle; one per Flask app."""

    def __init__(self, circulation, books, borrowers, analytics):
        self.circulation = circulation
        self.books = books
        self.borrowers = borrowers
        self.analytics = analytics


def build_services(config, session=None, today=None) -> Services:
    book_repo = BookRepo(session)
    borrower_repo = BorrowerRepo(session)
    borrowing_repo = BorrowingRepo(session)

    page_size = config.get("DEFAULT_PAGE_SIZE", 10)
    max_page_size = config.get("MAX_PAGE_SIZE", 100)

    extra = {"today": today} if today is not None else {}
    circulation = CirculationService(
        book_repo,
        borrower_repo,
        borrowing_repo,
        session=session,
        default_loan_days=config.get("DEFAULT_LOAN_DAYS", 14),
        extension_policy=ExtensionPolicy.from_config(config),
        default_page_size=page_size,
        max_page_size=max_page_size,
        **extra,
    )
    books = BookService(
        book_repo,
        borrowing_repo,
        session=session,
        low_availability_threshold=config.get("LOW_AVAILABILITY_THRESHOLD", 2),
        default_page_size=page_size,
        max_page_size=max_page_size,
    )
    borrowers = BorrowerService(
        borrower_repo,
        borrowing_repo,
        circulation,
        session=session,
        default_page_size=page_size,
        max_page_size=max_page_size,
    )
    analytics = AnalyticsService(circulation, books, borrowers, borrowing_repo)
    return Services(circulation, books, borrowers, analytics)
