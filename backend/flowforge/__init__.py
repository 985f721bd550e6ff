"""Application factory for the Flowforge backend."""
from __future__ import annotations

import logging
import time

from flask import Flask
from sqlalchemy.exc import OperationalError

from .config import Config
from .extensions import cors, db, limiter


def create_app(config_class: type[Config] = Config) -> Flask:
    """Create and configure the Flask application instance."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Module loggers live under the application logger's namespace.
    app.logger.setLevel(logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper()))

    db.init_app(app)

    allowed_origins = [
        origin.strip()
        for origin in (app.config.get("CORS_ALLOWED_ORIGINS") or "").split(",")
        if origin.strip()
    ]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": allowed_origins}},
        allow_headers=["Content-Type"],
    )

    limiter.init_app(app)

    from .api.export import bp as export_bp
    from .api.health import bp as health_bp
    from .api.revisions import bp as revisions_bp
    from .api.schedules import bp as schedules_bp
    from .api.workflow import bp as workflow_bp

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(workflow_bp, url_prefix="/api")
    app.register_blueprint(revisions_bp, url_prefix="/api")
    app.register_blueprint(schedules_bp, url_prefix="/api")
    app.register_blueprint(export_bp, url_prefix="/api")

    with app.app_context():
        # Import models to ensure they are registered with SQLAlchemy before creating tables.
        from . import models  # noqa: F401

        _initialize_database(app)

    if app.config.get("ENABLE_SCHEDULER", True):
        from .workflow.scheduler import ensure_scheduler_started

        ensure_scheduler_started(app)

    return app


def _initialize_database(app: Flask) -> None:
    """Create tables and seed the block catalog, retrying while the database is unavailable."""

    from .models.system_block import ensure_system_blocks

    max_retries = int(app.config.get("DB_INIT_MAX_RETRIES", 30))
    retry_delay = float(app.config.get("DB_INIT_RETRY_DELAY", 2))

    for attempt in range(1, max_retries + 1):
        try:
            db.create_all()
            added = ensure_system_blocks()
            if added:
                app.logger.info("Seeded %s block type(s) into the catalog.", added)
            return
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= max_retries:
                app.logger.exception("Database initialization failed after %s attempts.", attempt)
                raise

            app.logger.warning(
                "Database initialization attempt %s/%s failed: %s", attempt, max_retries, exc
            )
            time.sleep(retry_delay)
