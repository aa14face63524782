# conftest.py

import os

import pytest

# Set testing environment BEFORE importing app so the module-level app uses TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import create_app  # noqa: E402
from config import TestingConfig  # noqa: E402
from config.monitoring import TestingMonitoringConfig  # noqa: E402
from fieldservice_app.models import db  # noqa: E402


@pytest.fixture(scope="function")
def app(tmp_path):
    """Create an isolated application backed by a temporary SQLite file."""
    db_path = (tmp_path / "fieldservice_test.db").as_posix()
    instance_dir = tmp_path / "instance"
    instance_dir.mkdir()

    flask_app = create_app(
        TestingConfig,
        TestingMonitoringConfig,
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_path}",
        BACKUP_ENABLED=True,
        BACKUP_DIR=str(tmp_path / "backups"),
        BACKUP_UPLOAD_DIR=str(tmp_path / "uploads"),
        CELERY_SQLITE_PATH=str(instance_dir / "celery.sqlite"),
        CELERY_CONFIG={"task_always_eager": True, "task_eager_propagates": True},
        LOG_LEVEL="DEBUG",
    )

    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers and ensure testing environment"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.slow)
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
