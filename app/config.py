"""
Runtime settings, read from environment variables and .env files.

Values come from the process environment first, then ``.env.<APP_ENV>``
(APP_ENV defaults to "development"), then ``.env`` in the project root.

- DATABASE_PATH: SQLite file, default assets/library.db
- UPLOADS_ROOT: directory that contains the uploads/ folder, default assets/
- CASCADE_MATERIAL_DELETE: delete a model's materials together with the model
- CORS_ORIGINS: comma-separated allowed origins, default "*"
- LOG_LEVEL: minimum log level, default INFO
- HOST / PORT: bind address for main.py
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import structlog
from dotenv import dotenv_values

PROJECT_ROOT = Path(__file__).parent.parent

_TRUTHY = {"1", "true", "yes", "on"}


def load_env(env_dir: Optional[Path] = None) -> Dict[str, str]:
    """Merge .env, .env.<APP_ENV> and the process environment (later wins)."""
    env_dir = env_dir or PROJECT_ROOT
    app_env = os.getenv("APP_ENV", "development").strip() or "development"

    merged: Dict[str, str] = {}
    for path in (env_dir / ".env", env_dir / f".env.{app_env}"):
        if path.exists():
            merged.update({k: v for k, v in dotenv_values(path).items() if v is not None})
    merged.update(os.environ)
    return merged


def _flag(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def parse_origins(raw: str) -> Tuple[str, ...]:
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


@dataclass(frozen=True)
class Settings:
    database_path: Path
    uploads_root: Path
    cascade_material_delete: bool = False
    cors_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3001

    @classmethod
    def from_env(cls, env_dir: Optional[Path] = None) -> "Settings":
        env = load_env(env_dir)
        assets_dir = PROJECT_ROOT / "assets"
        database_path = env.get("DATABASE_PATH", "").strip() or str(assets_dir / "library.db")
        uploads_root = env.get("UPLOADS_ROOT", "").strip() or str(assets_dir)
        return cls(
            database_path=Path(database_path),
            uploads_root=Path(uploads_root),
            cascade_material_delete=_flag(env, "CASCADE_MATERIAL_DELETE"),
            cors_origins=parse_origins(env.get("CORS_ORIGINS", "*")) or ("*",),
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            host=env.get("HOST", "127.0.0.1"),
            port=int(env.get("PORT", "3001")),
        )


def configure_logging(level: str = "INFO") -> None:
    """Set up structlog to emit one JSON object per event."""
    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        level_no = logging.INFO

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
    )
