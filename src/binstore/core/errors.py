"""
Structured error types for the binstore storage engine.

Every failure the engine raises is a BinstoreError subclass carrying a
category, a retry hint, structured context (table, field, operation) and the
chained driver exception when there is one.  Callers can route on the type
alone; logs get the full picture from ``to_dict()``.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure domain
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry the table/field/operation they concern
    - **Error Chaining:** Driver exceptions survive as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       BinstoreError                              │
        │        (category, retryable, context, cause)                     │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  SchemaError (SCHEMA)          QueryError (QUERY)                │
        │     InitializationError           TranslationError               │
        │     UnsupportedTypeError          InvalidPageError               │
        │     EntityDefinitionError                                        │
        │                                                                  │
        │  DataError (DATA)              ExecutionError (DATABASE)         │
        │     RecordNotFoundError                                          │
        │     CodecError                 ConfigError (CONFIG)              │
        │        DecodeError                                               │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> err = RecordNotFoundError("Record not found").with_context(table="Parts")
    >>> err.context.table
    'Parts'
    >>> err.retryable
    False

    Wrapping a driver failure:

    >>> try:
    ...     raise OSError("connection reset")
    ... except OSError as e:
    ...     err = ExecutionError("statement failed", cause=e)
    >>> err.cause
    OSError('connection reset')

Guardrails:
    ❌ DON'T: Raise bare Exception from engine code
    ✅ DO: Raise the BinstoreError subclass for the failure domain

    ❌ DON'T: Drop the driver exception when wrapping
    ✅ DO: Pass it as cause= and re-raise ``from`` it

Tags:
    error-handling, exception-hierarchy, binstore, storage
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dc_field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories for classification and routing."""

    SCHEMA = "SCHEMA"             # Descriptor derivation, DDL sync
    QUERY = "QUERY"               # Query/predicate construction
    DATA = "DATA"                 # Row-level problems (missing, undecodable)
    DATABASE = "DATABASE"         # Driver / transport failures
    CONFIG = "CONFIG"             # Missing or invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        table: Table the failing operation addressed
        field: Field / column involved, if any
        operation: Engine operation name (``update``, ``schema.sync``, ...)
        statement: Head of the SQL statement being executed
        metadata: Additional key-value pairs
    """

    table: str | None = None
    field: str | None = None
    operation: str | None = None
    statement: str | None = None
    metadata: dict[str, Any] = dc_field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["table", "field", "operation", "statement"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class BinstoreError(Exception):
    """
    Base exception for all binstore errors.

    Subclasses set ``default_category`` and ``default_retryable``; instances
    may override both.  ``cause`` is also installed as ``__cause__`` so
    tracebacks show the original driver error.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BinstoreError:
        """
        Add context to this error (fluent API).

        Usage:
            raise TranslationError("Unknown field").with_context(
                table="Parts", field="Colour"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SCHEMA ERRORS
# =============================================================================


class SchemaError(BinstoreError):
    """Descriptor derivation or schema synchronization problem."""

    default_category = ErrorCategory.SCHEMA


class InitializationError(SchemaError):
    """Schema synchronization failed; the provider cannot start."""

    pass


class UnsupportedTypeError(SchemaError):
    """A field's type has no column mapping."""

    def __init__(self, message: str, *, python_type: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.python_type = python_type


class EntityDefinitionError(SchemaError):
    """An entity type violates the table descriptor invariants."""

    pass


# =============================================================================
# QUERY ERRORS
# =============================================================================


class QueryError(BinstoreError):
    """Query construction error, raised before anything executes."""

    default_category = ErrorCategory.QUERY


class TranslationError(QueryError):
    """Predicate references an unknown field or an unsupported operator."""

    pass


class InvalidPageError(QueryError):
    """Page number or page size out of range."""

    def __init__(self, message: str, *, page: int | None = None, results: int | None = None):
        super().__init__(message)
        self.page = page
        self.results = results


# =============================================================================
# DATA ERRORS
# =============================================================================


class DataError(BinstoreError):
    """Row-level data problem."""

    default_category = ErrorCategory.DATA


class RecordNotFoundError(DataError):
    """A targeted mutation matched no row."""

    def __init__(self, message: str = "Record not found", *, key: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.key = key


class CodecError(DataError):
    """A value cannot be converted between its field type and storage."""

    def __init__(self, message: str, *, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class DecodeError(CodecError):
    """A stored cell cannot be decoded into its field type."""

    pass


# =============================================================================
# EXECUTION / CONFIG ERRORS
# =============================================================================


class ExecutionError(BinstoreError):
    """Driver or transport failure while executing a statement.

    Never retried by the engine; ``retryable`` is a hint for the caller.
    """

    default_category = ErrorCategory.DATABASE


class ConfigError(BinstoreError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "BinstoreError",
    # Schema
    "SchemaError",
    "InitializationError",
    "UnsupportedTypeError",
    "EntityDefinitionError",
    # Query
    "QueryError",
    "TranslationError",
    "InvalidPageError",
    # Data
    "DataError",
    "RecordNotFoundError",
    "CodecError",
    "DecodeError",
    # Execution / config
    "ExecutionError",
    "ConfigError",
]
