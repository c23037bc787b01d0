"""
Shared pytest fixtures for the binstore tests.

This module provides:
- A throwaway SQLite database file per test
- Engine, dialect and executor fixtures wired to that file
- Synchronized repositories for the test-only entities
- A fully constructed inventory provider

Usage:
    Fixtures are auto-discovered by pytest; request them by name.

    def test_something(widgets):
        widgets.add(Widget(Name="a"))
"""

from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.engine import Engine

from binstore.core.connection import create_storage_engine
from binstore.core.dialect import SQLiteDialect
from binstore.core.executor import SqlExecutor
from binstore.core.repository import EntityRepository
from binstore.core.schema import SchemaSynchronizer, describe
from binstore.provider import InventoryStorageProvider
from tests._support.entities import Gadget, Widget


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests that touch a database file as integration, the rest as unit."""
    db_fixtures = {"db_url", "engine", "executor", "widgets", "gadgets", "provider"}
    for item in items:
        if db_fixtures.intersection(getattr(item, "fixturenames", ())):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """SQLAlchemy URL of an empty SQLite file."""
    return f"sqlite:///{tmp_path / 'binstore.db'}"


@pytest.fixture
def dialect() -> SQLiteDialect:
    return SQLiteDialect()


@pytest.fixture
def engine(db_url: str) -> Generator[Engine, None, None]:
    eng = create_storage_engine(db_url)
    yield eng
    eng.dispose()


@pytest.fixture
def executor(engine: Engine, dialect: SQLiteDialect) -> SqlExecutor:
    return SqlExecutor(engine, dialect)


@pytest.fixture
def widgets(engine: Engine, dialect: SQLiteDialect, executor: SqlExecutor) -> EntityRepository[Widget]:
    """Repository over a freshly synchronized ``Widgets`` table."""
    SchemaSynchronizer(engine, dialect, [describe(Widget)]).sync()
    return EntityRepository(executor, Widget)


@pytest.fixture
def gadgets(engine: Engine, dialect: SQLiteDialect, executor: SqlExecutor) -> EntityRepository[Gadget]:
    SchemaSynchronizer(engine, dialect, [describe(Gadget)]).sync()
    return EntityRepository(executor, Gadget)


@pytest.fixture
def provider(db_url: str) -> Generator[InventoryStorageProvider, None, None]:
    store = InventoryStorageProvider(db_url)
    yield store
    store.close()
