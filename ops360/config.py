from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from datetime import time
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


def _parse_time(value: str) -> time:
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except ValueError as exc:
        raise RuntimeError(f"DUE_TIME must look like HH:MM, got {value!r}") from exc


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    due_time: time = time(23, 59)
    reminder_lead_hours: int = 24
    timer_workers: int = 4
    timer_poll_seconds: float = 30.0
    notify_workers: int = 2
    mail_backend: str = "log"
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = False
    mail_from: str = "no-reply@ops360.local"


load_env()

DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

SETTINGS = Settings(
    database_url=DATABASE_URL,
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs"),
    due_time=_parse_time(os.getenv("DUE_TIME", "23:59")),
    reminder_lead_hours=int(os.getenv("REMINDER_LEAD_HOURS", "24")),
    timer_workers=int(os.getenv("TIMER_WORKERS", "4")),
    timer_poll_seconds=float(os.getenv("TIMER_POLL_SECONDS", "30")),
    notify_workers=int(os.getenv("NOTIFY_WORKERS", "2")),
    mail_backend=os.getenv("MAIL_BACKEND", "log").strip().lower(),
    smtp_host=os.getenv("SMTP_HOST", "localhost"),
    smtp_port=int(os.getenv("SMTP_PORT", "25")),
    smtp_user=os.getenv("SMTP_USER", "").strip() or None,
    smtp_password=os.getenv("SMTP_PASSWORD", "").strip() or None,
    smtp_use_tls=_parse_bool(os.getenv("SMTP_USE_TLS", "false")),
    mail_from=os.getenv("MAIL_FROM", "no-reply@ops360.local"),
)
