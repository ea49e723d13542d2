"""Rooms backend configuration.

Loads settings from two YAML files:
  * rooms.settings.yaml: non-secret configuration
  * rooms.secrets.yaml: secrets (never committed)

Both files are optional. Missing files fall back to the defaults declared
on the pydantic models below.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("rooms.settings.yaml")
SECRETS_FILE  = Path("rooms.secrets.yaml")

IN_MEMORY_DB = ":memory:"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _resolve_data_path(raw: str, settings_path: Path) -> str:
    """Resolve a relative data path against the project layout.

    When the settings file lives in a ``config/`` directory the project root
    is its parent; otherwise paths are relative to the settings file itself.
    """
    if raw == IN_MEMORY_DB:
        return raw
    path = Path(raw)
    if path.is_absolute():
        return str(path)
    settings_dir = settings_path.resolve().parent
    base = settings_dir.parent if settings_dir.name == "config" else settings_dir
    return str(base / path)


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class JWTSecrets(BaseModel):
    secret_key: str = "change-me-in-production"
    algorithm:  str = "HS256"


class Secrets(BaseModel):
    jwt: JWTSecrets = Field(default_factory=JWTSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str  = "0.0.0.0"
    port:            int  = 8000
    debug:           bool = False
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class DatabaseSettings(BaseModel):
    path: str = "rooms.duckdb"


class AuthSettings(BaseModel):
    token_expire_days:   int = 30
    password_min_length: int = 8
    bcrypt_rounds:       int = 10


class PaginationSettings(BaseModel):
    default_page_size: int = 20
    max_page_size:     int = 100

    @field_validator("default_page_size", "max_page_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("page sizes must be at least 1")
        return value


class NotificationSettings(BaseModel):
    default_page_size: int = 20


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:        ServerSettings       = Field(default_factory=ServerSettings)
    database:      DatabaseSettings     = Field(default_factory=DatabaseSettings)
    auth:          AuthSettings         = Field(default_factory=AuthSettings)
    pagination:    PaginationSettings   = Field(default_factory=PaginationSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    logging:       LoggingSettings      = Field(default_factory=LoggingSettings)
    secrets:       Secrets              = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_path = Path(settings_path) if settings_path else SETTINGS_FILE
    secrets_path = Path(secrets_path) if secrets_path else SECRETS_FILE

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data

    config = AppConfig(**settings_data)
    config.database.path = _resolve_data_path(config.database.path, settings_path)
    logger.info(
        "Settings loaded (server=%s:%s, database=%s)",
        config.server.host,
        config.server.port,
        config.database.path,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AppConfig) -> None:
    """Replace the process-wide configuration (used by tests)."""
    global _config
    _config = config


def reset_config() -> None:
    """Forget the cached configuration so the next call reloads it."""
    global _config
    _config = None
