import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "tenderhub.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", False)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-tenderhub")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    TRUST_IDENTITY_HEADERS = _bool_env("TRUST_IDENTITY_HEADERS", False)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    NOTIFICATION_DISPATCH_MODE = os.environ.get("NOTIFICATION_DISPATCH_MODE", "pool")
    NOTIFICATION_MAX_WORKERS = _int_env("NOTIFICATION_MAX_WORKERS", 4)
    NOTIFICATION_FANOUT_LIMIT = _int_env("NOTIFICATION_FANOUT_LIMIT", 500)
    PUSH_WEBHOOK_URL = os.environ.get("PUSH_WEBHOOK_URL")
    PUSH_WEBHOOK_TOKEN = os.environ.get("PUSH_WEBHOOK_TOKEN")
    PUSH_TIMEOUT_SECONDS = _int_env("PUSH_TIMEOUT_SECONDS", 10)

    DEFAULT_BID_CURRENCY = os.environ.get("DEFAULT_BID_CURRENCY", "RWF")
    TENDER_AUTO_CLOSE_ENABLED = _bool_env("TENDER_AUTO_CLOSE_ENABLED", False)
    TENDER_AUTO_CLOSE_INTERVAL_SECONDS = _int_env("TENDER_AUTO_CLOSE_INTERVAL_SECONDS", 300)

    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_MAX_REQUESTS = _int_env("RATE_LIMIT_MAX_REQUESTS", 300)
    RATE_LIMIT_WINDOW_SECONDS = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60)
    SECURITY_HEADERS_ENABLED = _bool_env("SECURITY_HEADERS_ENABLED", True)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is required in production.")
        if env == "production" and self.SECRET_KEY == "dev-secret-tenderhub":
            raise RuntimeError("SECRET_KEY must be set in production.")
