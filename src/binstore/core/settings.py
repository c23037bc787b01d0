"""Storage settings for binstore.

The engine needs one value to start, a connection string.  Everything else
(log level, SQL echo, seeding) has a development-friendly default and can be
overridden from the environment with the ``BINSTORE_`` prefix or a ``.env``
file.

Examples:
    >>> import os
    >>> os.environ["BINSTORE_CONNECTION_STRING"] = "sqlite:///binner.db"
    >>> StorageSettings().connection_string
    'sqlite:///binner.db'

Tags:
    settings, configuration, pydantic, environment, binstore
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Settings for :class:`~binstore.provider.InventoryStorageProvider`.

    Fields
    ──────
    connection_string : SQLAlchemy URL of the inventory database
    log_level         : Structlog log level
    json_logs         : Force JSON (True) / console (False) logs; None = auto
    echo_sql          : Echo every statement through SQLAlchemy's logger
    pool_pre_ping     : Test pooled connections before use
    seed_defaults     : Seed default part types into a freshly created table
    """

    model_config = SettingsConfigDict(
        env_prefix="BINSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    connection_string: str = Field(
        default="sqlite:///binner.db",
        description="SQLAlchemy database URL",
    )
    pool_pre_ping: bool = True
    seed_defaults: bool = True

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
    echo_sql: bool = False

    @field_validator("connection_string")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("connection_string must not be empty")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


__all__ = ["StorageSettings"]
