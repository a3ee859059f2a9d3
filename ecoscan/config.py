"""
Application settings.

Values come from environment variables; a ``.env`` file in the working
directory is loaded first when present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_OFF_BASE_URL = "https://world.openfoodfacts.org"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_STORAGE_DIR = Path.home() / ".ecoscan"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Environment variables:
        OPENAI_API_KEY: Text-generation provider key
        ECOSCAN_OPENAI_MODEL: Model name (default gpt-4o-mini)
        ECOSCAN_OFF_BASE_URL: OpenFoodFacts base URL
        ECOSCAN_HTTP_TIMEOUT: Provider timeout in seconds (default 8.0)
        ECOSCAN_HTTP_MAX_RETRIES: Attempts per provider call (default 3)
        ECOSCAN_STORAGE_DIR: Directory for cache and history files
        ECOSCAN_LOG_LEVEL: Log level (default INFO)
        ECOSCAN_LOG_JSON: "1" for JSON log lines

    Example:
        >>> settings = Settings.from_env()
        >>> assert settings.http_timeout > 0
    """

    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    off_base_url: str = DEFAULT_OFF_BASE_URL
    http_timeout: float = 8.0
    http_max_retries: int = 3
    storage_dir: Path = DEFAULT_STORAGE_DIR
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> Settings:
        """Build settings from the environment.

        Args:
            env_file: Optional explicit .env path (default: ./.env)
        """
        env_path = env_file or Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        storage_dir = os.getenv("ECOSCAN_STORAGE_DIR")

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("ECOSCAN_OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            off_base_url=os.getenv("ECOSCAN_OFF_BASE_URL", DEFAULT_OFF_BASE_URL).rstrip("/"),
            http_timeout=_env_float("ECOSCAN_HTTP_TIMEOUT", 8.0),
            http_max_retries=max(1, _env_int("ECOSCAN_HTTP_MAX_RETRIES", 3)),
            storage_dir=Path(storage_dir).expanduser() if storage_dir else DEFAULT_STORAGE_DIR,
            log_level=os.getenv("ECOSCAN_LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("ECOSCAN_LOG_JSON", False),
        )
