from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple


DATA_DIR = Path(__file__).resolve().parents[1]
FILE_GLOB = "*.xlsx"
REMOTE_TIMEOUT_DEFAULT = 10.0
CORS_ORIGINS_DEFAULT = ("http://localhost:3000", "http://127.0.0.1:3000")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DATA_DIR
    file_glob: str = FILE_GLOB
    remote_api_url: Optional[str] = None
    remote_timeout: float = REMOTE_TIMEOUT_DEFAULT
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: CORS_ORIGINS_DEFAULT)


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        out = float(value)
    except ValueError:
        return default
    return out if out > 0 else default


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env

    data_dir = env.get("ORDER_DASH_DATA_DIR", "").strip()
    file_glob = env.get("ORDER_DASH_FILE_GLOB", "").strip()
    api_url = env.get("ORDER_DASH_API_URL", "").strip().rstrip("/")
    log_level = env.get("ORDER_DASH_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        log_level = "INFO"
    origins = tuple(o.strip() for o in env.get("ORDER_DASH_CORS_ORIGINS", "").split(",") if o.strip())

    return Settings(
        data_dir=Path(data_dir) if data_dir else DATA_DIR,
        file_glob=file_glob or FILE_GLOB,
        remote_api_url=api_url or None,
        remote_timeout=_as_float(env.get("ORDER_DASH_API_TIMEOUT"), REMOTE_TIMEOUT_DEFAULT),
        log_level=log_level,
        cors_origins=origins or CORS_ORIGINS_DEFAULT,
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
