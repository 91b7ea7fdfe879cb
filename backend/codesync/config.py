"""CodeSync application configuration.

Settings are read from a single YAML file:
  * codesync.settings.yaml  (working directory by default)

The path can be overridden with the CODESYNC_SETTINGS environment variable
or by passing ``settings_path`` to :func:`load_config`. A missing file is
not an error; every section falls back to its defaults.
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

SETTINGS_FILE = Path("codesync.settings.yaml")
SETTINGS_ENV_VAR = "CODESYNC_SETTINGS"

_VALID_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at top level")
    return data


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 5000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.lower().strip()
        if value not in _VALID_LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(_VALID_LOG_LEVELS)}")
        return value


class SessionConfig(BaseModel):
    """Per-room connection limits. 0 means unlimited."""
    max_participants: int = Field(default=0, ge=0)


class RoomsConfig(BaseModel):
    """Seed values for new rooms and new files."""
    default_file_name:    str = "index.js"
    default_file_content: str = "// Start coding here..."
    default_language:     str = "javascript"
    new_file_language:    str = "javascript"


class AppConfig(BaseModel):
    server:  ServerConfig  = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    rooms:   RoomsConfig   = Field(default_factory=RoomsConfig)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def resolve_settings_path(settings_path: Optional[Path] = None) -> Path:
    """Explicit argument wins, then the environment variable, then the default."""
    if settings_path is not None:
        return Path(settings_path)
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path)
    return SETTINGS_FILE


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load the settings file into an *AppConfig* object."""
    path = resolve_settings_path(settings_path)
    config = AppConfig(**_load_yaml(path))
    logger.info(
        "Settings loaded from %s (server=%s:%s, log_level=%s, max_participants=%s)",
        path,
        config.server.host,
        config.server.port,
        config.logging.level,
        config.session.max_participants,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AppConfig) -> None:
    """Replace the process-wide config (tests and embedding callers)."""
    global _config
    _config = config


def reset_config() -> None:
    """Drop the cached config so the next get_config() reloads it."""
    global _config
    _config = None
