from datetime import date

from circulation.errors import InvalidInput


class ExtensionPolicy:
    """
    Optional limits for due date extensions.
    None for either limit means there is no limit.

    - max_extensions: maximum extension_count a loan may reach
    - max_extension_days: maximum days a single extension may add to the current due date
    """

    def __init__(self, max_extensions: int = None, max_extension_days: int = None):
        self.max_extensions = max_extensions
        self.max_extension_days = max_extension_days

    @classmethod
    def from_config(cls, config):
        return cls(
            max_extensions=config.get("MAX_EXTENSIONS"),
            max_extension_days=config.get("MAX_EXTENSION_DAYS"),
        )

    def check(self, borrowing, new_due_date: date):
        count = borrowing.extension_count or 0
        if self.max_extensions is not None and count >= self.max_extensions:
            raise InvalidInput(f"Maximum number of extensions ({self.max_extensions}) reached")

        if self.max_extension_days is not None:
            added = (new_due_date - borrowing.due_date).days
            if added > self.max_extension_days:
                raise InvalidInput(
                    f"Extension cannot exceed {self.max_extension_days} days (requested {added})"
                )
