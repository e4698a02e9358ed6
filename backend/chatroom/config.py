"""Chatroom application configuration.

Loads settings from a single YAML file:
  * chatroom.settings.yaml  — non-secret configuration

The path can be overridden with the CHATROOM_SETTINGS environment variable.
A missing file is not an error; every field has a default.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chatroom.settings.yaml")
SETTINGS_ENV_VAR = "CHATROOM_SETTINGS"


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
    host:            str       = "0.0.0.0"
    port:            int       = 5000
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )


class ChatSettings(BaseModel):
    """Server-side chat behaviour."""
    history_limit:     int = Field(default=100, ge=1)
    default_page_size: int = Field(default=20, ge=0)
    anonymous_name:    str = "Anonymous"


class ClientSettings(BaseModel):
    """Defaults used by the bundled Python client."""
    typing_quiet_period_ms: int = Field(default=1200, ge=0)
    page_size:              int = Field(default=20, ge=1)


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            raise ValueError(f"Unknown log level: {value}")
        return value


class AppSettings(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)
    client:  ClientSettings  = Field(default_factory=ClientSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

_config: Optional[AppSettings] = None


def load_config(settings_path: Optional[Path] = None) -> AppSettings:
    """Load settings from YAML into an *AppSettings* object."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    settings_data = _load_yaml(Path(settings_path))

    app_settings = AppSettings(**settings_data)
    logger.info(
        "Settings loaded (server=%s:%s, history_limit=%s, log_level=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.chat.history_limit,
        app_settings.logging.level,
    )
    return app_settings


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached settings (for testing)."""
    global _config
    _config = None
