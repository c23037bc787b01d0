"""Tests for StorageSettings and structured logging helpers."""

from __future__ import annotations

import pytest
import structlog
from pydantic import ValidationError

from binstore.core.logging import LogContext, configure_logging, get_logger
from binstore.core.settings import StorageSettings


class TestStorageSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BINSTORE_CONNECTION_STRING", raising=False)
        settings = StorageSettings(_env_file=None)
        assert settings.connection_string == "sqlite:///binner.db"
        assert settings.seed_defaults is True
        assert settings.log_level == "INFO"

    def test_environment_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BINSTORE_CONNECTION_STRING", "postgresql+psycopg://u:p@db/binner")
        monkeypatch.setenv("BINSTORE_SEED_DEFAULTS", "false")
        settings = StorageSettings(_env_file=None)
        assert settings.connection_string == "postgresql+psycopg://u:p@db/binner"
        assert settings.seed_defaults is False

    def test_connection_string_is_stripped(self) -> None:
        assert StorageSettings(connection_string="  sqlite:///x.db ").connection_string == (
            "sqlite:///x.db"
        )

    def test_blank_connection_string(self) -> None:
        with pytest.raises(ValidationError):
            StorageSettings(connection_string="   ")

    def test_log_level_normalised(self) -> None:
        assert StorageSettings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            StorageSettings(log_level="chatty")


class TestLogging:
    def test_configure_and_log(self) -> None:
        configure_logging(level="WARNING", json_format=True)
        logger = get_logger("binstore.test")
        logger.info("schema.sync_started", tables=1)
        logger.warning("schema.sync_started", tables=1)

    def test_log_context(self) -> None:
        with LogContext(operation="update", user_id=7):
            assert structlog.contextvars.get_contextvars()["user_id"] == 7
        assert "user_id" not in structlog.contextvars.get_contextvars()

    def test_nested_log_context_restores_outer_values(self) -> None:
        with LogContext(operation="get_or_create", table="Parts"):
            with LogContext(operation="find"):
                assert structlog.contextvars.get_contextvars()["operation"] == "find"
            bound = structlog.contextvars.get_contextvars()
            assert bound["operation"] == "get_or_create"
            assert bound["table"] == "Parts"
        assert "operation" not in structlog.contextvars.get_contextvars()
