from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# SQLite file in the project root (next to streamlit_app.py)
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "clinic.sqlite"

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8501",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8501",
)

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = f"sqlite:///{DEFAULT_DB_PATH}"
    sql_echo: bool = False
    log_level: str = "INFO"
    seed_on_startup: bool = True
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)


def get_settings() -> Settings:
    """Read settings from the environment at call time."""
    extra = [o.strip() for o in os.getenv("CORS_ORIGIN", "").split(",") if o.strip()]
    origins = tuple(dict.fromkeys([*DEFAULT_CORS_ORIGINS, *extra]))

    return Settings(
        database_url=os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}"),
        sql_echo=_env_bool("SQL_ECHO", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        seed_on_startup=_env_bool("SEED_ON_STARTUP", True),
        cors_origins=origins,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
