from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite://"
    log_level: str = "INFO"
    log_dir: str = "logs"
    capture_window_sec: int = 30
    start_grace_min: int = 60
    capture_source: str = "library"
    capture_library_dir: str | None = None
    calendar_import_path: str | None = None
    ics_export_path: str | None = None
    owner_id: str = "local"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc


def _env_path(name: str) -> str | None:
    return os.getenv(name, "").strip() or None


load_env()

SETTINGS = Settings(
    database_url=os.getenv("DATABASE_URL", "").strip() or "sqlite://",
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs"),
    capture_window_sec=_env_int("CAPTURE_WINDOW_SEC", 30),
    start_grace_min=_env_int("START_GRACE_MIN", 60),
    capture_source=os.getenv("CAPTURE_SOURCE", "library").strip().lower() or "library",
    capture_library_dir=_env_path("CAPTURE_LIBRARY_DIR"),
    calendar_import_path=_env_path("CALENDAR_IMPORT_PATH"),
    ics_export_path=_env_path("ICS_EXPORT_PATH"),
    owner_id=os.getenv("OWNER_ID", "local").strip() or "local",
)
