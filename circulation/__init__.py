from flask import Flask, jsonify
from circulation.config import Config
from circulation.extensions import db, migrate
from circulation.errors import register_error_handlers


def create_app(config_object=None, today=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_object is not None:
        app.config.from_object(config_object)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # 1) db init
    db.init_app(app)
    migrate.init_app(app, db)

    from circulation import models  # noqa: F401  (register tables)

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            db.create_all()

    # 2) service bundle (explicit wiring, no global registry)
    from circulation.services import build_services
    app.extensions["circulation"] = build_services(app.config, today=today)

    # 3) blueprints + error mapping
    from circulation.controllers.analytics_controller import analytics_bp
    from circulation.controllers.book_controller import book_bp
    from circulation.controllers.borrower_controller import borrower_bp
    from circulation.controllers.borrowing_controller import borrowing_bp
    app.register_blueprint(book_bp, url_prefix="/books")
    app.register_blueprint(borrower_bp, url_prefix="/borrowers")
    app.register_blueprint(borrowing_bp, url_prefix="/borrowings")
    app.register_blueprint(analytics_bp, url_prefix="/analytics")
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    # Overdue sweep
    if app.config.get("SCHEDULER_ENABLED"):
        from circulation.tasks.scheduler import start_scheduler
        start_scheduler(app)

    return app
