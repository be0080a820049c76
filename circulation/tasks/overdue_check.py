# circulation/tasks/overdue_check.py
from flask import current_app

from circulation.extensions import db


def run_overdue_check_job(app):
    """
    Logs the current overdue picture:
    - overdue: return_date NULL and due_date < today
    - borrowers_with_overdue: distinct borrowers holding at least one overdue loan
    Read-only; nothing is written or sent.
    Returns the summary dict (handy for tests and manual runs).
    """
    with app.app_context():
        try:
            services = current_app.extensions["circulation"]

            overdue = services.circulation.get_overdue_borrowings()
            borrowers = services.borrowers.get_borrowers_with_overdue()

            worst = max((b["days_overdue"] for b in overdue["overdue_borrowings"]), default=0)

            summary = {
                "overdue": overdue["total_overdue"],
                "borrowers_with_overdue": len(borrowers),
                "max_days_overdue": worst,
            }
            current_app.logger.info(
                f"[overdue_check] overdue={summary['overdue']} "
                f"borrowers_with_overdue={summary['borrowers_with_overdue']} "
                f"max_days_overdue={summary['max_days_overdue']}"
            )
            return summary

        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f"[overdue_check] Failed: {e}")
            raise
