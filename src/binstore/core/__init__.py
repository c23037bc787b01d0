"""Binstore Core -- the relational persistence engine.

Manifesto:
    Every stored entity needs the same machinery: a table that exists and
    has all its columns, parameters that bind on every backend, rows that map
    back into typed records, and filtered, sorted, paginated reads that stay
    inside one owner's data.  ``binstore.core`` implements that machinery
    once, driven by static table descriptors instead of per-entity SQL.

    - **Descriptor-driven:** Entities are plain dataclasses registered with ``@table``
    - **Dialect-neutral:** Backend differences live only in ``dialect``
    - **Parameterized:** Caller values are always bind parameters
    - **Sync-only:** One connection per operation, released on every path

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (BinstoreError, categories)
        types.py           FieldType semantic column types
        protocols.py       OwnershipContext protocol + UserContext

    Layer 2 -- Schema
        schema/model.py    @table / column() / describe() descriptor cache
        schema/generator.py Idempotent create-database / table / column DDL
        schema/sync.py     Probe-then-apply synchronizer
        dialect.py         SQLite / PostgreSQL / SQL Server dialects

    Layer 3 -- Values & Queries
        codec.py           Field value <-> stored cell conversion
        binder.py          Named parameter sets from records and mappings
        mapper.py          Result rows -> entity records
        predicate.py       Typed predicate AST + SQL translation
        paging.py          Paginated, allow-listed, owner-scoped queries

    Layer 4 -- Execution
        connection.py      SQLAlchemy engine factory
        executor.py        scalar / query / execute / insert facade
        repository.py      EntityRepository[T] CRUD + paging

    Cross-Cutting
        logging.py         Structured logging (structlog)
        settings.py        StorageSettings (pydantic-settings, BINSTORE_ prefix)
"""

from binstore.core.errors import (
    BinstoreError,
    ConfigError,
    DecodeError,
    EntityDefinitionError,
    ErrorCategory,
    ExecutionError,
    InitializationError,
    InvalidPageError,
    RecordNotFoundError,
    TranslationError,
    UnsupportedTypeError,
)
from binstore.core.paging import PaginatedRequest, PaginatedResponse, SortDirection
from binstore.core.predicate import F, all_of, any_of
from binstore.core.protocols import OwnershipContext, UserContext
from binstore.core.repository import EntityRepository
from binstore.core.schema import FieldType, column, describe, table

__all__ = [
    # Errors
    "BinstoreError",
    "ErrorCategory",
    "InitializationError",
    "UnsupportedTypeError",
    "EntityDefinitionError",
    "TranslationError",
    "InvalidPageError",
    "RecordNotFoundError",
    "DecodeError",
    "ExecutionError",
    "ConfigError",
    # Schema
    "FieldType",
    "column",
    "table",
    "describe",
    # Queries
    "F",
    "all_of",
    "any_of",
    "PaginatedRequest",
    "PaginatedResponse",
    "SortDirection",
    "OwnershipContext",
    "UserContext",
    "EntityRepository",
]
