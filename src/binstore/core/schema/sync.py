"""Schema synchronization: bring a live database up to the descriptors.

Manifesto:
    The provider must be able to start against an empty server, a database
    from an older release, or one that is already current, and end up in
    the same place every time.  Synchronization probes the catalog before
    each statement and only creates what is missing, so a second run has no
    effect at all.

Architecture:
    ::

        SchemaSynchronizer.sync()
          │
          ├─ create database?   (admin connection, AUTOCOMMIT)
          │     probe database_exists_query → skip | CREATE DATABASE
          │
          ├─ one transaction on the target database
          │     for each table:
          │        probe table_exists_query  → skip | CREATE TABLE
          │        for each non-key field:
          │           probe column_exists_query → skip | ADD COLUMN
          │
          └─ on_table_created(table) for each new table (after commit)

Guardrails:
    ❌ DON'T: Run sync from several processes at once. Two runs racing on
       an empty database can both decide a table is missing.
    ✅ DO: Run it from one deployment step (``binstore schema sync``) or
       behind an external deployment lock.

Tags:
    schema, ddl, sync, idempotent, binstore
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from binstore.core.connection import admin_url, create_storage_engine
from binstore.core.dialect import Dialect
from binstore.core.errors import InitializationError
from binstore.core.logging import get_logger
from binstore.core.schema.generator import DdlStatement, SchemaGenerator
from binstore.core.schema.model import TableDescriptor

logger = get_logger(__name__)


@dataclass
class SchemaSyncResult:
    """Effects of one synchronization run."""

    database_created: bool = False
    tables_created: list[str] = field(default_factory=list)
    columns_added: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.database_created or bool(self.tables_created or self.columns_added)

    def to_dict(self) -> dict[str, Any]:
        return {
            "database_created": self.database_created,
            "tables_created": list(self.tables_created),
            "columns_added": list(self.columns_added),
        }


class SchemaSynchronizer:
    """Apply missing database objects for a set of table descriptors.

    Parameters
    ----------
    engine
        Engine bound to the target database.
    dialect
        Dialect matching ``engine``.
    tables
        Descriptors to synchronize, in creation order.
    on_table_created
        Called once per table this run created, after the DDL has committed.
    """

    def __init__(
        self,
        engine: Engine,
        dialect: Dialect,
        tables: Sequence[TableDescriptor],
        *,
        on_table_created: Callable[[TableDescriptor], None] | None = None,
    ):
        self.engine = engine
        self.dialect = dialect
        self.tables = tuple(tables)
        self.generator = SchemaGenerator(dialect, self.tables, database=engine.url.database)
        self._on_table_created = on_table_created

    def sync(self) -> SchemaSyncResult:
        """Run synchronization once.

        Raises:
            InitializationError: any probe, DDL or hook failure
        """
        result = SchemaSyncResult()
        logger.info("schema.sync_started", backend=self.dialect.name, tables=len(self.tables))
        try:
            result.database_created = self._ensure_database()
            with self.engine.begin() as conn:
                for stmt in self.generator.table_statements():
                    self._apply(conn, stmt, result)
        except SQLAlchemyError as e:
            logger.error("schema.sync_failed", error=str(e))
            raise InitializationError(f"Schema synchronization failed: {e}", cause=e).with_context(
                operation="schema.sync"
            ) from e

        by_name = {t.name: t for t in self.tables}
        for name in result.tables_created:
            self._run_hook(by_name[name])

        logger.info(
            "schema.sync_finished",
            database_created=result.database_created,
            tables_created=len(result.tables_created),
            columns_added=len(result.columns_added),
        )
        return result

    # -- internals ----------------------------------------------------------

    def _exists(self, conn: Connection, stmt: DdlStatement) -> bool:
        if stmt.probe is None:
            return False
        return conn.execute(text(stmt.probe), stmt.probe_params).first() is not None

    def _apply(self, conn: Connection, stmt: DdlStatement, result: SchemaSyncResult) -> None:
        if self._exists(conn, stmt):
            return
        conn.exec_driver_sql(stmt.sql)
        if stmt.kind == "table":
            result.tables_created.append(stmt.table)
            logger.info("schema.table_created", table=stmt.table)
        elif stmt.kind == "column":
            result.columns_added.append(f"{stmt.table}.{stmt.column}")
            logger.info("schema.column_added", table=stmt.table, column=stmt.column)

    def _ensure_database(self) -> bool:
        stmt = self.generator.create_database()
        if stmt is None:
            return False
        url = admin_url(self.engine.url, self.dialect)
        if url is None:
            return False
        admin = create_storage_engine(url, isolation_level="AUTOCOMMIT")
        try:
            with admin.connect() as conn:
                if self._exists(conn, stmt):
                    return False
                conn.exec_driver_sql(stmt.sql)
        finally:
            admin.dispose()
        logger.info("schema.database_created", database=self.generator.database)
        return True

    def _run_hook(self, table: TableDescriptor) -> None:
        if self._on_table_created is None:
            return
        try:
            self._on_table_created(table)
        except Exception as e:
            raise InitializationError(
                f"Post-create hook failed for table {table.name}: {e}", cause=e
            ).with_context(table=table.name, operation="schema.on_table_created") from e


__all__ = ["SchemaSyncResult", "SchemaSynchronizer"]
