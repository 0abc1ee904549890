from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = PROJECT_ROOT / "data"
DB_DIR = DATA_DIR / "db"
EVAL_DATA_DIR = DATA_DIR / "eval"
REPORTS_DIR = DATA_DIR / "reports"


def load_env_file(path: Path) -> dict[str, str]:
    """Export ``KEY=value`` lines from ``path``; variables already set win.

    Returns the pairs that were actually exported.
    """
    if not path.is_file():
        return {}

    exported: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        name, _, raw_value = line.partition("=")
        name = name.strip()
        if not name or name in os.environ:
            continue
        os.environ[name] = exported[name] = raw_value.strip().strip("'\"")
    return exported


load_env_file(Path(os.getenv("CAMPUS_CONNECT_ENV_FILE", str(PROJECT_ROOT / ".env"))))


@dataclass(frozen=True)
class Settings:
    database_path: str = os.getenv("CAMPUS_CONNECT_DB", str(DB_DIR / "campus_connect.db"))
    vocabulary_path: str | None = os.getenv("CAMPUS_CONNECT_VOCABULARY_PATH")

    navigation_delay_seconds: float = float(os.getenv("NAVIGATION_DELAY_SECONDS", "1.5"))
    session_idle_seconds: float = float(os.getenv("SESSION_IDLE_SECONDS", "1800"))
    min_query_length: int = int(os.getenv("MIN_QUERY_LENGTH", "3"))

    max_comment_length: int = 500
    max_message_length: int = 2000
    min_score: int = 1
    max_score: int = 5

    transaction_max_attempts: int = int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "5"))
    cache_ttl_seconds: float = float(os.getenv("CACHE_TTL_SECONDS", "30"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    openai_system_prompt: str | None = os.getenv("OPENAI_SYSTEM_PROMPT")


SETTINGS = Settings()


def ensure_directories() -> None:
    for path in [DB_DIR, EVAL_DATA_DIR, REPORTS_DIR]:
        path.mkdir(parents=True, exist_ok=True)
