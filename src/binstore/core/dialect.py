"""SQL dialect abstraction for the storage engine.

Provides a ``Dialect`` protocol and concrete implementations for the
supported backends.  The schema generator, query builder and value codec use
``Dialect`` methods for every backend-specific fragment (identifier quoting,
column types, default expressions, guarded DDL, catalog probes, row framing,
insert-returning) so that none of them ever branch on a backend name.

Manifesto:
    The inventory schema must come up identically on SQL Server, PostgreSQL
    and SQLite.  Without a dialect layer the generator fills up with
    ``if backend == ...`` branches that drift apart.

    - **One interface:** Dialect protocol for all SQL generation
    - **Zero coupling:** Engine code never imports database drivers
    - **Auto-detection:** ``dialect_for_url()`` picks from the connection string
    - **Testable:** SQLiteDialect for tests, the others for production

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    SchemaGenerator / PageQueryBuilder / ValueCodec
                              │
                              ▼
    ┌──────────────┐  ┌─────────────────────┐  ┌────────────────────────┐
    │ SQLite       │  │ PostgreSQL          │  │ SQL Server             │
    │ "Name"       │  │ "Name"              │  │ [Name]                 │
    │ AUTOINCREMENT│  │ GENERATED AS IDENT. │  │ IDENTITY(1,1)          │
    │ LIMIT/OFFSET │  │ LIMIT/OFFSET        │  │ OFFSET/FETCH NEXT      │
    │ RETURNING    │  │ RETURNING           │  │ OUTPUT INSERTED        │
    └──────────────┘  └─────────────────────┘  └────────────────────────┘

Features:
    - **Type mapping:** One column type per :class:`FieldType`
    - **Default policy:** Zero, empty string, UTC now, fresh UUID, false, empty bytes
    - **Guarded DDL:** create-database / create-table / add-column
    - **Catalog probes:** Existence checks used before each DDL statement
    - **Native adaptation:** Driver-unsupported Python values converted on bind

Examples:
    >>> d = get_dialect("mssql")
    >>> d.quote("Parts")
    '[Parts]'
    >>> d.column_type(FieldType.TEXT, 255)
    'NVARCHAR(255)'

Guardrails:
    ❌ DON'T: Put backend-specific SQL in the generator or repositories
    ✅ DO: Add a Dialect method and implement it for every backend

    ❌ DON'T: Interpolate caller-supplied values into DDL
    ✅ DO: Only interpolate names from static table descriptors

Tags:
    dialect, sql, ddl, portability, database, binstore
"""

from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from binstore.core.errors import ConfigError, UnsupportedTypeError
from binstore.core.types import FieldType

# Earliest value a SQL Server DATETIME column accepts.
SQLSERVER_MIN_DATETIME = datetime(1753, 1, 1)


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** or a full statement valid for the
    target database.  Parameters are always SQLAlchemy named binds
    (``:Name``); the driver paramstyle is SQLAlchemy's concern.
    """

    @property
    def name(self) -> str:
        """Backend name as SQLAlchemy reports it (``'sqlite'``, ...)."""
        ...

    @property
    def admin_database(self) -> str | None:
        """Database to connect to when creating the target database.

        ``None`` for backends without separate databases (SQLite).
        """
        ...

    @property
    def min_datetime(self) -> datetime:
        """Earliest date-time the storage engine can hold."""
        ...

    # -- Identifiers ---------------------------------------------------------

    def quote(self, identifier: str) -> str:
        """Quote a table or column name."""
        ...

    def literal(self, value: str) -> str:
        """Render a string literal (names in catalog guards only)."""
        ...

    def param(self, name: str, kind: FieldType) -> str:
        """Placeholder for *name* usable where the backend cannot infer a type.

        ``CAST(:UserId AS BIGINT)`` on PostgreSQL, ``:UserId`` elsewhere.
        """
        ...

    def column_value(self, column: str, kind: FieldType) -> str:
        """Expression for a quoted *column* in comparisons and ``ORDER BY``."""
        ...

    # -- Column rendering ----------------------------------------------------

    def column_type(self, kind: FieldType, max_length: int | None = None) -> str:
        """Column type for a semantic field type."""
        ...

    def default_value(self, kind: FieldType, *, on_alter: bool = False) -> str:
        """``DEFAULT`` expression used when a column is NOT NULL.

        ``on_alter`` asks for a constant expression, for backends that reject
        non-constant defaults in ``ALTER TABLE ... ADD``.
        """
        ...

    def auto_increment_type(self, kind: FieldType) -> str:
        """Column type of a database-generated integer key."""
        ...

    def auto_increment_suffix(self) -> str:
        """Modifiers following ``NOT NULL`` on a generated integer key."""
        ...

    # -- DDL -----------------------------------------------------------------

    def create_database(self, database: str) -> str | None:
        """Create-database statement, or ``None`` if not applicable."""
        ...

    def create_table(self, table: str, columns: list[str]) -> str:
        """Create-table-if-missing statement."""
        ...

    def add_column(self, table: str, column: str, definition: str) -> str:
        """Add-column-if-missing statement (``definition`` includes the name)."""
        ...

    # -- Catalog probes ------------------------------------------------------

    def database_exists_query(self) -> str | None:
        """Query returning a row if database ``:database`` exists."""
        ...

    def table_exists_query(self) -> str:
        """Query returning a row if table ``:table`` exists."""
        ...

    def column_exists_query(self) -> str:
        """Query returning a row if ``:table`` has column ``:column``."""
        ...

    # -- DML -----------------------------------------------------------------

    def insert_returning(self, table: str, columns: list[str], key: str) -> str:
        """Single-row insert returning the (possibly generated) key."""
        ...

    def limit_offset(self, limit_param: str, offset_param: str) -> str:
        """Row framing clause appended after ``ORDER BY``."""
        ...

    # -- Values --------------------------------------------------------------

    def adapt(self, value: Any) -> Any:
        """Convert a Python value the driver cannot bind natively."""
        ...


def _quote_double(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect — type affinities, ``AUTOINCREMENT``, ``RETURNING``.

    SQLite has no native decimal, UUID or date-time storage; those values
    travel as text and are parsed back by the value codec.  Decimals live in
    TEXT columns because NUMERIC affinity would round them through REAL;
    comparisons and sorting cast them back with :meth:`column_value`.
    """

    _TYPES = {
        FieldType.INT8: "INTEGER",
        FieldType.INT16: "INTEGER",
        FieldType.INT32: "INTEGER",
        FieldType.INT64: "INTEGER",
        FieldType.FLOAT: "REAL",
        FieldType.DECIMAL: "TEXT",
        FieldType.BOOLEAN: "BOOLEAN",
        FieldType.DATETIME: "DATETIME",
        FieldType.DURATION: "TIME",
        FieldType.UUID: "CHAR(36)",
        FieldType.ENUM: "INTEGER",
    }

    # Version 4 UUID text built from randomblob(); parenthesised for DEFAULT.
    _NEW_UUID = (
        "(lower(hex(randomblob(4))) || '-' || lower(hex(randomblob(2))) || '-4' || "
        "substr(lower(hex(randomblob(2))), 2) || '-' || "
        "substr('89ab', 1 + (abs(random()) % 4), 1) || "
        "substr(lower(hex(randomblob(2))), 2) || '-' || lower(hex(randomblob(6))))"
    )

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def admin_database(self) -> str | None:
        return None

    @property
    def min_datetime(self) -> datetime:
        return datetime.min

    # -- Identifiers -------------------------------------------------------

    def quote(self, identifier: str) -> str:
        return _quote_double(identifier)

    def literal(self, value: str) -> str:
        return _literal(value)

    def param(self, name: str, kind: FieldType) -> str:  # noqa: ARG002
        return f":{name}"

    def column_value(self, column: str, kind: FieldType) -> str:
        if kind is FieldType.DECIMAL:
            return f"CAST({column} AS REAL)"
        return column

    # -- Columns -----------------------------------------------------------

    def column_type(self, kind: FieldType, max_length: int | None = None) -> str:
        if kind in (FieldType.TEXT, FieldType.TEXT_COLLECTION):
            return f"VARCHAR({max_length})" if max_length else "TEXT"
        if kind is FieldType.BYTES:
            return "BLOB"
        try:
            return self._TYPES[kind]
        except KeyError:
            raise UnsupportedTypeError(f"No SQLite column type for {kind}") from None

    def default_value(self, kind: FieldType, *, on_alter: bool = False) -> str:
        if kind is FieldType.DATETIME:
            return "'1970-01-01 00:00:00'" if on_alter else "CURRENT_TIMESTAMP"
        if kind is FieldType.DURATION:
            return "'00:00:00'" if on_alter else "CURRENT_TIME"
        if kind is FieldType.UUID:
            return "'00000000-0000-0000-0000-000000000000'" if on_alter else self._NEW_UUID
        if kind in (FieldType.TEXT, FieldType.TEXT_COLLECTION):
            return "''"
        if kind is FieldType.BYTES:
            return "X''"
        if kind is FieldType.DECIMAL:
            return "'0'"
        return "0"

    def auto_increment_type(self, kind: FieldType) -> str:  # noqa: ARG002
        # Only an exact INTEGER column aliases the rowid.
        return "INTEGER"

    def auto_increment_suffix(self) -> str:
        return "PRIMARY KEY AUTOINCREMENT"

    # -- DDL ---------------------------------------------------------------

    def create_database(self, database: str) -> str | None:  # noqa: ARG002
        return None

    def create_table(self, table: str, columns: list[str]) -> str:
        body = ",\n    ".join(columns)
        return f"CREATE TABLE IF NOT EXISTS {self.quote(table)} (\n    {body}\n)"

    def add_column(self, table: str, column: str, definition: str) -> str:  # noqa: ARG002
        # No IF NOT EXISTS form; callers probe with column_exists_query() first.
        return f"ALTER TABLE {self.quote(table)} ADD COLUMN {definition}"

    # -- Probes ------------------------------------------------------------

    def database_exists_query(self) -> str | None:
        return None

    def table_exists_query(self) -> str:
        return "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = :table"

    def column_exists_query(self) -> str:
        return "SELECT 1 FROM pragma_table_info(:table) WHERE name = :column"

    # -- DML ---------------------------------------------------------------

    def insert_returning(self, table: str, columns: list[str], key: str) -> str:
        if not columns:
            return f"INSERT INTO {self.quote(table)} DEFAULT VALUES RETURNING {self.quote(key)}"
        cols = ", ".join(self.quote(c) for c in columns)
        vals = ", ".join(f":{c}" for c in columns)
        return (
            f"INSERT INTO {self.quote(table)} ({cols}) VALUES ({vals}) "
            f"RETURNING {self.quote(key)}"
        )

    def limit_offset(self, limit_param: str, offset_param: str) -> str:
        return f"LIMIT :{limit_param} OFFSET :{offset_param}"

    # -- Values ------------------------------------------------------------

    def adapt(self, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (Decimal, UUID)):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, time):
            return value.isoformat()
        return value


class PostgreSQLDialect:
    """PostgreSQL dialect — identity columns, ``RETURNING``, typed NULL checks.

    PostgreSQL cannot infer the type of a bind parameter used only in
    ``:p IS NULL``; :meth:`param` adds an explicit ``CAST`` there.
    """

    _TYPES = {
        FieldType.INT8: "SMALLINT",
        FieldType.INT16: "SMALLINT",
        FieldType.INT32: "INTEGER",
        FieldType.INT64: "BIGINT",
        FieldType.FLOAT: "DOUBLE PRECISION",
        FieldType.DECIMAL: "NUMERIC(18, 3)",
        FieldType.BOOLEAN: "BOOLEAN",
        FieldType.DATETIME: "TIMESTAMP",
        FieldType.DURATION: "TIME",
        FieldType.UUID: "UUID",
        FieldType.ENUM: "INTEGER",
    }

    _DEFAULTS = {
        FieldType.DATETIME: "(NOW() AT TIME ZONE 'utc')",
        FieldType.DURATION: "CAST(NOW() AT TIME ZONE 'utc' AS TIME)",
        FieldType.UUID: "gen_random_uuid()",
        FieldType.BOOLEAN: "FALSE",
        FieldType.TEXT: "''",
        FieldType.TEXT_COLLECTION: "''",
        FieldType.BYTES: "''::bytea",
    }

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def admin_database(self) -> str | None:
        return "postgres"

    @property
    def min_datetime(self) -> datetime:
        return datetime.min

    def quote(self, identifier: str) -> str:
        return _quote_double(identifier)

    def literal(self, value: str) -> str:
        return _literal(value)

    def param(self, name: str, kind: FieldType) -> str:
        return f"CAST(:{name} AS {self.column_type(kind)})"

    def column_value(self, column: str, kind: FieldType) -> str:  # noqa: ARG002
        return column

    def column_type(self, kind: FieldType, max_length: int | None = None) -> str:
        if kind in (FieldType.TEXT, FieldType.TEXT_COLLECTION):
            return f"VARCHAR({max_length})" if max_length else "TEXT"
        if kind is FieldType.BYTES:
            return "BYTEA"
        try:
            return self._TYPES[kind]
        except KeyError:
            raise UnsupportedTypeError(f"No PostgreSQL column type for {kind}") from None

    def default_value(self, kind: FieldType, *, on_alter: bool = False) -> str:  # noqa: ARG002
        return self._DEFAULTS.get(kind, "0")

    def auto_increment_type(self, kind: FieldType) -> str:
        return self.column_type(kind)

    def auto_increment_suffix(self) -> str:
        return "GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY"

    def create_database(self, database: str) -> str | None:
        # No IF NOT EXISTS form; callers probe with database_exists_query() first.
        return f"CREATE DATABASE {self.quote(database)}"

    def create_table(self, table: str, columns: list[str]) -> str:
        body = ",\n    ".join(columns)
        return f"CREATE TABLE IF NOT EXISTS {self.quote(table)} (\n    {body}\n)"

    def add_column(self, table: str, column: str, definition: str) -> str:  # noqa: ARG002
        return f"ALTER TABLE {self.quote(table)} ADD COLUMN IF NOT EXISTS {definition}"

    def database_exists_query(self) -> str | None:
        return "SELECT 1 FROM pg_database WHERE datname = :database"

    def table_exists_query(self) -> str:
        return (
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = :table"
        )

    def column_exists_query(self) -> str:
        return (
            "SELECT 1 FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = :table "
            "AND column_name = :column"
        )

    def insert_returning(self, table: str, columns: list[str], key: str) -> str:
        if not columns:
            return f"INSERT INTO {self.quote(table)} DEFAULT VALUES RETURNING {self.quote(key)}"
        cols = ", ".join(self.quote(c) for c in columns)
        vals = ", ".join(f":{c}" for c in columns)
        return (
            f"INSERT INTO {self.quote(table)} ({cols}) VALUES ({vals}) "
            f"RETURNING {self.quote(key)}"
        )

    def limit_offset(self, limit_param: str, offset_param: str) -> str:
        return f"LIMIT :{limit_param} OFFSET :{offset_param}"

    def adapt(self, value: Any) -> Any:
        return value


class SqlServerDialect:
    """SQL Server dialect — ``[name]`` quoting, ``IDENTITY``, ``OUTPUT INSERTED``.

    DDL is guarded in SQL (``IF NOT EXISTS (SELECT ... FROM sysobjects ...)``)
    as well as by the catalog probes, so a statement is safe to replay.
    """

    _TYPES = {
        FieldType.INT8: "TINYINT",
        FieldType.INT16: "SMALLINT",
        FieldType.INT32: "INT",
        FieldType.INT64: "BIGINT",
        FieldType.FLOAT: "FLOAT",
        FieldType.DECIMAL: "DECIMAL(18, 3)",
        FieldType.BOOLEAN: "BIT",
        FieldType.DATETIME: "DATETIME",
        FieldType.DURATION: "TIME",
        FieldType.UUID: "UNIQUEIDENTIFIER",
        FieldType.ENUM: "INT",
    }

    _DEFAULTS = {
        FieldType.DATETIME: "GETUTCDATE()",
        FieldType.DURATION: "CAST(GETUTCDATE() AS TIME)",
        FieldType.UUID: "NEWID()",
        FieldType.TEXT: "''",
        FieldType.TEXT_COLLECTION: "''",
        FieldType.BYTES: "0x",
    }

    @property
    def name(self) -> str:
        return "mssql"

    @property
    def admin_database(self) -> str | None:
        return "master"

    @property
    def min_datetime(self) -> datetime:
        return SQLSERVER_MIN_DATETIME

    def quote(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    def literal(self, value: str) -> str:
        return "N" + _literal(value)

    def param(self, name: str, kind: FieldType) -> str:  # noqa: ARG002
        return f":{name}"

    def column_value(self, column: str, kind: FieldType) -> str:  # noqa: ARG002
        return column

    def column_type(self, kind: FieldType, max_length: int | None = None) -> str:
        if kind in (FieldType.TEXT, FieldType.TEXT_COLLECTION):
            return f"NVARCHAR({max_length})" if max_length else "NVARCHAR(MAX)"
        if kind is FieldType.BYTES:
            return f"VARBINARY({max_length})" if max_length else "VARBINARY(MAX)"
        try:
            return self._TYPES[kind]
        except KeyError:
            raise UnsupportedTypeError(f"No SQL Server column type for {kind}") from None

    def default_value(self, kind: FieldType, *, on_alter: bool = False) -> str:  # noqa: ARG002
        return self._DEFAULTS.get(kind, "0")

    def auto_increment_type(self, kind: FieldType) -> str:
        return self.column_type(kind)

    def auto_increment_suffix(self) -> str:
        return "IDENTITY(1,1) PRIMARY KEY"

    def create_database(self, database: str) -> str | None:
        return (
            f"IF NOT EXISTS (SELECT name FROM sys.databases WHERE name = {self.literal(database)}) "
            f"CREATE DATABASE {self.quote(database)}"
        )

    def create_table(self, table: str, columns: list[str]) -> str:
        body = ",\n    ".join(columns)
        return (
            f"IF NOT EXISTS (SELECT * FROM sysobjects WHERE name = {self.literal(table)} "
            f"AND xtype = 'U')\n"
            f"CREATE TABLE {self.quote(table)} (\n    {body}\n)"
        )

    def add_column(self, table: str, column: str, definition: str) -> str:
        return (
            f"IF NOT EXISTS (SELECT * FROM syscolumns WHERE id = OBJECT_ID({self.literal(table)}) "
            f"AND name = {self.literal(column)})\n"
            f"ALTER TABLE {self.quote(table)} ADD {definition}"
        )

    def database_exists_query(self) -> str | None:
        return "SELECT 1 FROM sys.databases WHERE name = :database"

    def table_exists_query(self) -> str:
        return "SELECT 1 FROM sysobjects WHERE name = :table AND xtype = 'U'"

    def column_exists_query(self) -> str:
        return "SELECT 1 FROM syscolumns WHERE id = OBJECT_ID(:table) AND name = :column"

    def insert_returning(self, table: str, columns: list[str], key: str) -> str:
        output = f"OUTPUT INSERTED.{self.quote(key)}"
        if not columns:
            return f"INSERT INTO {self.quote(table)} {output} DEFAULT VALUES"
        cols = ", ".join(self.quote(c) for c in columns)
        vals = ", ".join(f":{c}" for c in columns)
        return f"INSERT INTO {self.quote(table)} ({cols}) {output} VALUES ({vals})"

    def limit_offset(self, limit_param: str, offset_param: str) -> str:
        return f"OFFSET :{offset_param} ROWS FETCH NEXT :{limit_param} ROWS ONLY"

    def adapt(self, value: Any) -> Any:
        return value


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "mssql": SqlServerDialect(),
    "sqlserver": SqlServerDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by backend name.

    Raises:
        ConfigError: If ``db_type`` is not recognised.

    Example:
        >>> get_dialect("postgresql").quote("Parts")
        '"Parts"'
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ConfigError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres', 'sqlserver'})}"
        )
    return _DIALECTS[key]


def dialect_for_url(url: str) -> Dialect:
    """Pick the dialect for a SQLAlchemy connection string."""
    try:
        backend = make_url(url).get_backend_name()
    except ArgumentError as e:
        raise ConfigError(f"Invalid connection string: {e}", cause=e) from e
    return get_dialect(backend)


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "SqlServerDialect",
    "SQLSERVER_MIN_DATETIME",
    "get_dialect",
    "dialect_for_url",
    "register_dialect",
]
