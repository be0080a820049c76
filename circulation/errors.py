from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from circulation.extensions import db


class CirculationError(ValueError):
    """Base class for every error the circulation core raises on purpose."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CirculationError):
    status_code = 404


class Unavailable(CirculationError):
    status_code = 409


class Conflict(CirculationError):
    status_code = 409


class AlreadyReturned(Conflict):
    pass


class InvalidInput(CirculationError):
    status_code = 400


def register_error_handlers(app):
    @app.errorhandler(CirculationError)
    def _circulation_error(e: CirculationError):
        return jsonify({"success": False, "error": type(e).__name__, "message": e.message}), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _database_error(e: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception(f"[errors] Database failure: {e}")
        return jsonify({"success": False, "message": "Internal server error"}), 500
