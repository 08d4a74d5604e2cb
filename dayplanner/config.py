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
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    user_id: str | None = None
    visible_days: int = 3
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    ai_max_tokens: int = 2000
    default_estimate_min: int = 30


load_env()

DATABASE_URL = os.getenv("DATABASE_URL", "").strip() or f"sqlite:///{PROJECT_ROOT / 'dayplanner.db'}"

SETTINGS = Settings(
    database_url=DATABASE_URL,
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs"),
    user_id=os.getenv("PLANNER_USER_ID", "").strip() or None,
    visible_days=max(int(os.getenv("PLANNER_VISIBLE_DAYS", "3")), 1),
    openai_api_key=os.getenv("OPENAI_API_KEY", "").strip() or None,
    openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
    ai_max_tokens=int(os.getenv("AI_MAX_TOKENS", "2000")),
    default_estimate_min=int(os.getenv("DEFAULT_ESTIMATE_MIN", "30")),
)
