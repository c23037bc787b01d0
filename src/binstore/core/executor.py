"""
Execution façade: one connection per call, one statement per connection.

Manifesto:
    Every engine operation goes through four calls: ``scalar``, ``query``,
    ``execute`` and ``insert``.  Each one checks a connection out of the
    SQLAlchemy pool, runs exactly one statement and gives the connection back
    on every exit path, so nothing outside this module ever holds a
    connection.

    - **Scoped acquisition:** ``with engine.connect()`` / ``engine.begin()``
    - **One statement:** No multi-statement batches, no ambient transaction
    - **Typed failures:** Driver errors surface as :class:`ExecutionError`
      with the driver exception chained; nothing is retried here

Architecture:
    ::

        Repository ─► SqlExecutor ─► ParameterBinder ─► ValueCodec.encode
                          │
                          ├─ scalar(sql, params)      → first column of first row
                          ├─ query(sql, table, params)→ RowMapper → [records]
                          ├─ execute(sql, params)     → affected row count
                          └─ insert(sql, params)      → returned key

Guardrails:
    ❌ DON'T: Log parameter values
    ✅ DO: Log statement kind, statement head and parameter names

Tags:
    executor, connection, sqlalchemy, binstore
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from binstore.core.binder import ParameterBinder
from binstore.core.codec import ValueCodec
from binstore.core.dialect import Dialect
from binstore.core.errors import ExecutionError
from binstore.core.logging import get_logger
from binstore.core.mapper import RowMapper
from binstore.core.schema.model import TableDescriptor

logger = get_logger(__name__)

_HEAD = 80


def _head(sql: str) -> str:
    flat = " ".join(sql.split())
    return flat if len(flat) <= _HEAD else flat[:_HEAD] + "..."


class SqlExecutor:
    """Run single statements against an engine."""

    def __init__(self, engine: Engine, dialect: Dialect):
        self.engine = engine
        self.dialect = dialect
        self.codec = ValueCodec(dialect)
        self.binder = ParameterBinder(self.codec)
        self.mapper = RowMapper(self.codec)

    @contextmanager
    def _guard(self, kind: str, sql: str, params: Mapping[str, Any]) -> Iterator[None]:
        logger.debug("sql.execute", kind=kind, statement=_head(sql), params=sorted(params))
        try:
            yield
        except SQLAlchemyError as e:
            retryable = isinstance(e, DBAPIError) and e.connection_invalidated
            logger.error("sql.failed", kind=kind, statement=_head(sql), error=str(e))
            raise ExecutionError(
                f"{kind} failed: {e}", retryable=retryable, cause=e
            ).with_context(operation=kind, statement=_head(sql)) from e

    def scalar(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        params = params or {}
        with self._guard("scalar", sql, params), self.engine.connect() as conn:
            return conn.execute(text(sql), dict(params)).scalar()

    def query(
        self,
        sql: str,
        table: TableDescriptor,
        params: Mapping[str, Any] | None = None,
    ) -> list[Any]:
        """Run a row-returning statement and map every row to a record.

        Rows are fetched before the connection is released; a decode error
        propagates as :class:`~binstore.core.errors.DecodeError`.
        """
        params = params or {}
        with self._guard("query", sql, params), self.engine.connect() as conn:
            rows = conn.execute(text(sql), dict(params)).fetchall()
        return self.mapper.map_rows(rows, table)

    def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> int:
        """Run a non-query in its own transaction; return affected rows."""
        params = params or {}
        with self._guard("execute", sql, params), self.engine.begin() as conn:
            return conn.execute(text(sql), dict(params)).rowcount

    def insert(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        """Run an insert that returns one value (the key) and commit it."""
        params = params or {}
        with self._guard("insert", sql, params), self.engine.begin() as conn:
            return conn.execute(text(sql), dict(params)).scalar_one()


__all__ = ["SqlExecutor"]
