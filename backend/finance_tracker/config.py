import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    storage_backend: str = os.getenv("STORAGE_BACKEND", "file").strip().lower()
    data_dir: str = os.getenv("DATA_DIR", "data")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///finance_tracker.db")
    session_ttl_minutes: int = int(os.getenv("SESSION_TTL_MINUTES", "60"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    log_json: bool = _env_flag("LOG_JSON")


settings = Settings()
