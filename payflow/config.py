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
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "payflow.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", False)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-payflow")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    TRUST_IDENTITY_HEADERS = _bool_env("TRUST_IDENTITY_HEADERS", False)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    BATCH_MAX_WORKERS = _int_env("BATCH_MAX_WORKERS", 4)
    EARLY_DUE_DAYS = _int_env("EARLY_DUE_DAYS", 10)
    NOTIFICATIONS_ENABLED = _bool_env("NOTIFICATIONS_ENABLED", True)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL nao definida para ambiente de producao.")
        if env == "production" and self.SECRET_KEY == "dev-secret-payflow":
            raise RuntimeError("SECRET_KEY insegura para producao.")
        if env == "production" and self.TRUST_IDENTITY_HEADERS:
            raise RuntimeError("TRUST_IDENTITY_HEADERS nao pode ser usado em producao.")
