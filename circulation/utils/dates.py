from __future__ import annotations

from datetime import date, datetime

from circulation.errors import InvalidInput


def parse_date(value, field: str = "date") -> date:
    """
    Accepts date, datetime or an ISO string ("2024-01-31" / "2024-01-31T10:00:00").
    Anything else is InvalidInput.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        s = value.strip()
        try:
            return date.fromisoformat(s)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise InvalidInput(f"Invalid {field} format")


def iso(value) -> str | None:
    return value.isoformat() if value is not None else None
