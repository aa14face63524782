# config/base.py
import os
import warnings

_DEV_SECRET_KEY = "dev-secret-key-change-in-production"
_TEST_SECRET_KEY = "test-secret-key-placeholder"


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_int(value, default, *, minimum=None):
    """Parse an integer environment value, falling back to ``default``."""
    if value is None or str(value).strip() == "":
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    if minimum is not None and number < minimum:
        return default
    return number


def _resolve_secret_key(flask_env):
    """
    SECRET_KEY from the environment.

    Production refuses to start without one; development falls back to a fixed
    key with a warning; testing uses a placeholder silently.
    """
    secret_key = os.environ.get("SECRET_KEY")
    if secret_key:
        return secret_key
    if flask_env == "production":
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )
    if flask_env == "testing":
        return _TEST_SECRET_KEY
    warnings.warn(
        "SECRET_KEY not set. Using default for development only. "
        "Set SECRET_KEY environment variable before deploying.",
        UserWarning,
    )
    return _DEV_SECRET_KEY


def _sqlite_engine_options(uri):
    if uri and uri.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 5}}
    return {}


class Config:
    SECRET_KEY = _resolve_secret_key(os.environ.get("FLASK_ENV", "development"))

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SQLALCHEMY_ECHO = False
    # PRAGMA foreign_keys is applied per connection by app._configure_sqlite_engine.
    SQLITE_ENFORCE_FOREIGN_KEYS = _coerce_bool(os.environ.get("SQLITE_ENFORCE_FOREIGN_KEYS"), default=True)

    # Backup storage and snapshot header
    BACKUP_ENABLED = _coerce_bool(os.environ.get("BACKUP_ENABLED"), default=True)
    BACKUP_DIR = os.environ.get("BACKUP_DIR")  # relative paths resolve under the instance folder
    BACKUP_UPLOAD_DIR = os.environ.get("BACKUP_UPLOAD_DIR")
    BACKUP_APP_NAME = os.environ.get("BACKUP_APP_NAME", "FieldService")
    BACKUP_FORMAT_VERSION = os.environ.get("BACKUP_FORMAT_VERSION", "3.0")
    BACKUP_MAX_UPLOAD_MB = _coerce_int(os.environ.get("BACKUP_MAX_UPLOAD_MB"), 100, minimum=1)

    # Backup worker
    BACKUP_WORKER_ENABLED = _coerce_bool(os.environ.get("BACKUP_WORKER_ENABLED"), default=False)
    BACKUP_TASK_TIME_LIMIT = _coerce_int(os.environ.get("BACKUP_TASK_TIME_LIMIT"), 30 * 60, minimum=1)
    BACKUP_TASK_SOFT_TIME_LIMIT = _coerce_int(os.environ.get("BACKUP_TASK_SOFT_TIME_LIMIT"), 25 * 60, minimum=1)
    CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND")
    CELERY_SQLITE_PATH = os.environ.get("CELERY_SQLITE_PATH")
    CELERY_CONFIG = os.environ.get("CELERY_CONFIG")


class DevelopmentConfig(Config):
    DEBUG = True
    _project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    instance_path = os.path.join(_project_root, "instance")
    os.makedirs(instance_path, exist_ok=True)

    # sqlite:/// + absolute path; forward slashes on Windows too
    _default_uri = "sqlite:///" + os.path.join(instance_path, "fieldservice_dev.db").replace("\\", "/")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_uri)
    SQLALCHEMY_ENGINE_OPTIONS = _sqlite_engine_options(SQLALCHEMY_DATABASE_URI)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = _sqlite_engine_options(SQLALCHEMY_DATABASE_URI)
    BACKUP_ENABLED = True
    BACKUP_WORKER_ENABLED = False


class ProductionConfig(Config):
    DEBUG = False
    _uri = os.environ.get("DATABASE_URL")
    if _uri and _uri.startswith("postgres://"):
        _uri = _uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _uri
    SQLALCHEMY_ENGINE_OPTIONS = _sqlite_engine_options(_uri)
