"""Huddle application configuration.

Loads settings from a single YAML file:
  * huddle.settings.yaml: server, room, upload and logging settings

The path can be overridden with the HUDDLE_SETTINGS environment variable,
and PORT overrides ``server.port`` for hosts that assign the port.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("huddle.settings.yaml")
SETTINGS_ENV_VAR = "HUDDLE_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:       str           = "0.0.0.0"
    port:       int           = 3000
    static_dir: Optional[str] = "public"


class RoomSettings(BaseModel):
    """Capacity and history limits for the chat room."""
    max_users:            int = 3
    history_replay_count: int = 20
    history_query_count:  int = 50
    outbox_size:          int = 256

    @field_validator("max_users", "outbox_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("history_replay_count", "history_query_count")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value


class UploadSettings(BaseModel):
    upload_dir:          str = "uploads"
    db_path:             str = "uploads.duckdb"
    max_file_size_bytes: int = 10 * 1024 * 1024


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    room:    RoomSettings    = Field(default_factory=RoomSettings)
    uploads: UploadSettings  = Field(default_factory=UploadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load *huddle.settings.yaml* into an :class:`AppConfig`.

    Args:
        settings_path: Explicit settings file. Defaults to ``$HUDDLE_SETTINGS``
            or ``huddle.settings.yaml`` in the working directory.
    """
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))

    data = _load_yaml(Path(settings_path))
    config = AppConfig(**data)

    port = os.environ.get("PORT")
    if port:
        config.server.port = int(port)

    logger.info(
        "Settings loaded (server=%s:%s, room.max_users=%s, uploads.dir=%s)",
        config.server.host,
        config.server.port,
        config.room.max_users,
        config.uploads.upload_dir,
    )
    return config


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached config (for testing)."""
    global _config
    _config = None
