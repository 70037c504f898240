"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "project_chat.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_UPLOADS_DIR = DATA_DIR / "uploads"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:5174"]  # Vite default


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_uploads_dir(env_value: PathLike | None = None) -> Path:
    """Resolve UPLOADS_DIR to an absolute path."""
    if env_value is None:
        env_value = os.getenv("UPLOADS_DIR")
    if not env_value:
        return DEFAULT_UPLOADS_DIR

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def is_production(env_value: str | None = None) -> bool:
    """True when APP_ENV selects production behaviour."""
    if env_value is None:
        env_value = os.getenv("APP_ENV", "development")
    return env_value.strip().lower() in ("production", "prod")


def cors_origins(env_value: str | None = None) -> list[str]:
    """Parse the comma separated CORS_ORIGINS variable."""
    if env_value is None:
        env_value = os.getenv("CORS_ORIGINS")
    if not env_value:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in env_value.split(",") if origin.strip()]
