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
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "marketplace.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)
    DB_BUSY_TIMEOUT_SECONDS = _int_env("DB_BUSY_TIMEOUT_SECONDS", 30)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-marketplace")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    PAGE_SIZE_DEFAULT = _int_env("PAGE_SIZE_DEFAULT", 10)
    PAGE_SIZE_MAX = _int_env("PAGE_SIZE_MAX", 100)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set for the production environment.")
        if env == "production" and self.SECRET_KEY == "dev-secret-marketplace":
            raise RuntimeError("SECRET_KEY is insecure for production.")
