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
    DB_PATH = DATABASE_URL or os.environ.get("DB_PATH") or os.path.join(DATABASE_DIR, "erp_obras.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    AI_MODE = os.environ.get("AI_MODE", "mock")
    AI_API_KEY = os.environ.get("AI_API_KEY")
    AI_MODEL = os.environ.get("AI_MODEL", "gemini-1.5-flash")
    AI_BASE_URL = os.environ.get("AI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
    AI_TIMEOUT_SECONDS = _int_env("AI_TIMEOUT_SECONDS", 15)

    DEFAULT_DUE_DAYS = _int_env("DEFAULT_DUE_DAYS", 30)
    SEED_DEMO_DATA = _bool_env("SEED_DEMO_DATA", True)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL nao definida para ambiente de producao.")
