"""SQLAlchemy engine factory for binstore.

``create_storage_engine`` turns the configured connection string into an
``Engine`` with per-backend tweaks.  Pooling is SQLAlchemy's; the engine
layer above acquires one connection per operation and releases it on every
exit path.

Tags:
    binstore, sqlalchemy, engine, connection
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError

from binstore.core.dialect import Dialect
from binstore.core.errors import ConfigError


@dataclass(frozen=True, slots=True)
class ConnectionInfo:
    """What the engine needs to know about a connection string."""

    backend: str
    database: str | None
    url: URL

    @classmethod
    def parse(cls, connection_string: str) -> ConnectionInfo:
        try:
            url = make_url(connection_string)
        except ArgumentError as e:
            raise ConfigError(f"Invalid connection string: {e}", cause=e) from e
        return cls(backend=url.get_backend_name(), database=url.database, url=url)


def create_storage_engine(
    url: str | URL,
    *,
    echo: bool = False,
    pool_pre_ping: bool = True,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql+psycopg://…``,
        ``mssql+pyodbc://…``)
    echo:
        If ``True``, log all SQL through SQLAlchemy's logger.
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    sa_url = make_url(url) if isinstance(url, str) else url

    if sa_url.get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = _sa_create_engine(sa_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return _sa_create_engine(sa_url, echo=echo, pool_pre_ping=pool_pre_ping, **kwargs)


def admin_url(url: URL, dialect: Dialect) -> URL | None:
    """URL of the administrative database used to create *url*'s database."""
    if dialect.admin_database is None or not url.database:
        return None
    return url.set(database=dialect.admin_database)


__all__ = ["ConnectionInfo", "create_storage_engine", "admin_url"]
