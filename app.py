# app.py

import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from sqlalchemy import event

# Load environment variables from .env file first
load_dotenv()

# Module imports after load_dotenv() - E402 is intentional
from config import DevelopmentConfig, ProductionConfig, TestingConfig  # noqa: E402
from config.monitoring import (  # noqa: E402
    DevelopmentMonitoringConfig,
    ProductionMonitoringConfig,
    TestingMonitoringConfig,
)
from config.validation import validate_and_exit  # noqa: E402
from fieldservice_app.interchange import init_interchange  # noqa: E402
from fieldservice_app.models import db  # noqa: E402
from fieldservice_app.utils.logging_config import setup_logging  # noqa: E402

logger = logging.getLogger(__name__)


def _select_config(flask_env: str):
    if flask_env == "production":
        return ProductionConfig, ProductionMonitoringConfig
    if flask_env == "testing":
        return TestingConfig, TestingMonitoringConfig
    return DevelopmentConfig, DevelopmentMonitoringConfig


def _configure_sqlite_connection_factory(*, enable_foreign_keys: bool):
    """Return a connection hook applying concurrency-friendly pragmas."""

    def _configure_sqlite_connection(dbapi_connection, connection_record):  # pragma: no cover - instrumentation
        # pysqlite's own transaction handling breaks SAVEPOINT; BEGIN is emitted by the "begin" hook.
        dbapi_connection.isolation_level = None
        try:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            if enable_foreign_keys:
                cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        except Exception as exc:
            logger.warning("Failed to apply SQLite PRAGMAs: %s", exc)

    return _configure_sqlite_connection


def _emit_sqlite_begin(conn):  # pragma: no cover - instrumentation
    conn.exec_driver_sql("BEGIN")


def _configure_sqlite_engine(app: Flask) -> None:
    engine = db.engine
    if not engine.url.drivername.startswith("sqlite"):
        return
    if getattr(engine, "_sqlite_pragmas_configured", False):
        return
    pragma_hook = _configure_sqlite_connection_factory(
        enable_foreign_keys=bool(app.config.get("SQLITE_ENFORCE_FOREIGN_KEYS", True))
    )
    event.listen(engine, "connect", pragma_hook)
    event.listen(engine, "begin", _emit_sqlite_begin)
    engine._sqlite_pragmas_configured = True  # type: ignore[attr-defined]


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    def too_large_error(error):
        limit = app.config.get("BACKUP_MAX_UPLOAD_MB")
        return jsonify({"error": f"Upload exceeds the {limit} MB limit."}), 413

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


def create_app(config_class=None, monitoring_class=None, **overrides) -> Flask:
    """
    Build a configured application.

    ``overrides`` are applied after the config classes, so tests can point
    ``SQLALCHEMY_DATABASE_URI`` or ``BACKUP_DIR`` at temporary locations.
    """
    flask_env = os.environ.get("FLASK_ENV", "development")
    if flask_env == "production":
        validate_and_exit(flask_env)

    default_config, default_monitoring = _select_config(flask_env)
    app = Flask(__name__)
    app.config.from_object(config_class or default_config)
    app.config.from_object(monitoring_class or default_monitoring)
    app.config.update(overrides)
    if app.config.get("MAX_CONTENT_LENGTH") is None:
        app.config["MAX_CONTENT_LENGTH"] = int(app.config.get("BACKUP_MAX_UPLOAD_MB", 100)) * 1024 * 1024

    db.init_app(app)
    setup_logging(app)

    with app.app_context():
        _configure_sqlite_engine(app)
        # Create the database tables only if not in testing mode
        if not app.config.get("TESTING", False):
            db.create_all()

    init_interchange(app)
    _register_error_handlers(app)
    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port)
