"""
Table and field descriptors derived from entity dataclasses.

An entity is a plain dataclass decorated with :func:`table`.  The decorator
only registers the class; the descriptor is derived lazily on first use by
:func:`describe` and cached for the lifetime of the process.  Column details
that cannot be read from a type annotation (key flag, max length, integer
width) are declared with :func:`column`, which stores them in the
dataclass field metadata.

Manifesto:
    - **Declared, not discovered:** Only classes passed through ``@table``
      are entities; the registry is explicit and inspectable
    - **Compute once:** Descriptors are built once per process under a lock
      and never change afterwards
    - **Fail at startup:** Unmappable types and key mistakes raise while the
      provider is being constructed, never mid-request

Architecture:
    ::

        @table("Parts", owner="UserId", sortable=(...))
        @dataclass
        class Part:
            PartId: int = column(key=True)
            PartNumber: str = column(max_length=255, default="")
                │
                ▼
        describe(Part) ──► TableDescriptor
                             ├── name = "Parts"
                             ├── fields = (FieldDescriptor, ...)
                             ├── key = FieldDescriptor("PartId", INT64)
                             ├── owner = "UserId"
                             └── sortable = ("PartNumber", ...)

Type derivation:
    ``bool`` → BOOLEAN, ``int`` → INT64 (width via ``kind=``), ``float`` →
    FLOAT, ``Decimal`` → DECIMAL, ``str`` → TEXT, ``datetime`` → DATETIME,
    ``timedelta`` → DURATION, ``UUID`` → UUID, ``bytes`` → BYTES, ``Enum``
    subclasses → ENUM, ``list[str]`` / ``tuple[str, ...]`` →
    TEXT_COLLECTION.  ``X | None`` marks the field nullable.

Examples:
    >>> @table("Widgets")
    ... @dataclass
    ... class Widget:
    ...     WidgetId: int = column(key=True, default=0)
    ...     Name: str = column(max_length=64, default="")
    >>> describe(Widget).key.name
    'WidgetId'

Tags:
    schema, descriptor, registry, dataclass, binstore
"""

from __future__ import annotations

import dataclasses
import enum
import threading
import types
import typing
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from binstore.core.errors import EntityDefinitionError, UnsupportedTypeError
from binstore.core.types import INTEGER_TYPES, NUMERIC_TYPES, FieldType

T = TypeVar("T")

_METADATA_KEY = "binstore"

_SCALAR_TYPES: dict[type, FieldType] = {
    bool: FieldType.BOOLEAN,
    int: FieldType.INT64,
    float: FieldType.FLOAT,
    Decimal: FieldType.DECIMAL,
    str: FieldType.TEXT,
    datetime: FieldType.DATETIME,
    timedelta: FieldType.DURATION,
    UUID: FieldType.UUID,
    bytes: FieldType.BYTES,
}


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """One column of a table descriptor."""

    name: str
    kind: FieldType
    python_type: type
    nullable: bool = False
    is_key: bool = False
    max_length: int | None = None
    enum_type: type[enum.Enum] | None = None

    @property
    def is_collection(self) -> bool:
        return self.kind is FieldType.TEXT_COLLECTION

    @property
    def is_text(self) -> bool:
        return self.kind is FieldType.TEXT

    @property
    def is_auto_increment(self) -> bool:
        """Numeric primary keys are generated by the database."""
        return self.is_key and self.kind in INTEGER_TYPES


@dataclass(frozen=True, slots=True)
class TableDescriptor:
    """Immutable schema metadata for one entity type."""

    name: str
    entity_type: type
    fields: tuple[FieldDescriptor, ...]
    key: FieldDescriptor
    owner: str | None = None
    sortable: tuple[str, ...] = ()

    def field(self, name: str) -> FieldDescriptor:
        """Look up a field by exact (case-sensitive) name.

        Raises:
            KeyError: no such field
        """
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        raise KeyError(name)

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def owner_field(self) -> FieldDescriptor | None:
        return self.field(self.owner) if self.owner else None


# =============================================================================
# Declaration helpers
# =============================================================================


def column(
    *,
    key: bool = False,
    max_length: int | None = None,
    kind: FieldType | None = None,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Dataclass field carrying column metadata.

    Args:
        key: Marks the primary key (exactly one per table)
        max_length: Bounds text / byte columns; unbounded when omitted
        kind: Overrides the type derived from the annotation, e.g.
            ``FieldType.INT32`` for an ``int`` field
    """
    metadata = {_METADATA_KEY: {"key": key, "max_length": max_length, "kind": kind}}
    if default_factory is not dataclasses.MISSING:
        return dataclasses.field(default_factory=default_factory, metadata=metadata)
    return dataclasses.field(default=default, metadata=metadata)


_REGISTRY: dict[type, dict[str, Any]] = {}
_DESCRIPTORS: dict[type, TableDescriptor] = {}
_LOCK = threading.Lock()


def table(
    name: str,
    *,
    owner: str | None = None,
    sortable: Iterable[str] | None = None,
) -> Any:
    """Register a dataclass as a stored entity.

    Args:
        name: Table name
        owner: Ownership column used for tenant scoping, if any
        sortable: Sort allow-list for paginated queries; defaults to every
            field that is neither a collection nor binary
    """

    def decorate(cls: type[T]) -> type[T]:
        with _LOCK:
            _REGISTRY[cls] = {
                "name": name,
                "owner": owner,
                "sortable": tuple(sortable) if sortable is not None else None,
            }
            _DESCRIPTORS.pop(cls, None)
        return cls

    return decorate


# =============================================================================
# Descriptor derivation
# =============================================================================


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        nullable = len(args) != len(typing.get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        return annotation, nullable
    return annotation, False


def _derive_kind(annotation: Any) -> tuple[FieldType, type]:
    origin = typing.get_origin(annotation)
    if origin in (list, tuple):
        args = [a for a in typing.get_args(annotation) if a is not Ellipsis]
        if args and all(a is str for a in args):
            return FieldType.TEXT_COLLECTION, origin
        raise UnsupportedTypeError(
            f"Collection type {annotation!r} is not supported; only sequences of str are",
            python_type=annotation,
        )
    if isinstance(annotation, type):
        if issubclass(annotation, enum.Enum):
            return FieldType.ENUM, annotation
        for candidate, kind in _SCALAR_TYPES.items():
            if annotation is candidate:
                return kind, annotation
    raise UnsupportedTypeError(
        f"No column mapping for type {annotation!r}", python_type=annotation
    )


def _build_descriptor(entity_type: type) -> TableDescriptor:
    options = _REGISTRY.get(entity_type)
    if options is None:
        raise EntityDefinitionError(
            f"{entity_type.__name__} is not registered; decorate it with @table"
        )
    if not dataclasses.is_dataclass(entity_type):
        raise EntityDefinitionError(f"{entity_type.__name__} must be a dataclass")

    table_name = options["name"]
    hints = typing.get_type_hints(entity_type)
    fields: list[FieldDescriptor] = []

    for dc_field in dataclasses.fields(entity_type):
        if not dc_field.init:
            continue
        if (
            dc_field.default is dataclasses.MISSING
            and dc_field.default_factory is dataclasses.MISSING
        ):
            raise EntityDefinitionError(
                f"{entity_type.__name__}.{dc_field.name} needs a default value"
            ).with_context(table=table_name, field=dc_field.name)

        meta = dc_field.metadata.get(_METADATA_KEY, {})
        annotation, nullable = _unwrap_optional(hints[dc_field.name])
        try:
            kind, python_type = _derive_kind(annotation)
        except UnsupportedTypeError as e:
            raise e.with_context(table=table_name, field=dc_field.name)

        override = meta.get("kind")
        if override is not None:
            if override in INTEGER_TYPES and kind is not FieldType.INT64:
                raise EntityDefinitionError(
                    f"{dc_field.name}: integer width override on a non-int field"
                ).with_context(table=table_name, field=dc_field.name)
            kind = override

        fields.append(
            FieldDescriptor(
                name=dc_field.name,
                kind=kind,
                python_type=python_type,
                nullable=nullable,
                is_key=bool(meta.get("key", False)),
                max_length=meta.get("max_length"),
                enum_type=python_type if kind is FieldType.ENUM else None,
            )
        )

    keys = [f for f in fields if f.is_key]
    if len(keys) != 1:
        raise EntityDefinitionError(
            f"{entity_type.__name__} must declare exactly one key field, found {len(keys)}"
        ).with_context(table=table_name)
    key = keys[0]
    if key.nullable or key.is_collection:
        raise EntityDefinitionError(
            f"Key field {key.name} cannot be nullable or a collection"
        ).with_context(table=table_name, field=key.name)

    owner = options["owner"]
    if owner is not None and not any(f.name == owner for f in fields):
        raise EntityDefinitionError(
            f"Ownership column {owner} is not a field of {entity_type.__name__}"
        ).with_context(table=table_name, field=owner)

    sortable = options["sortable"]
    if sortable is None:
        sortable = tuple(
            f.name for f in fields if f.kind not in (FieldType.TEXT_COLLECTION, FieldType.BYTES)
        )
    unknown = [s for s in sortable if not any(f.name == s for f in fields)]
    if unknown:
        raise EntityDefinitionError(
            f"Sortable columns not on {entity_type.__name__}: {', '.join(unknown)}"
        ).with_context(table=table_name)

    return TableDescriptor(
        name=table_name,
        entity_type=entity_type,
        fields=tuple(fields),
        key=key,
        owner=owner,
        sortable=tuple(sortable),
    )


def describe(entity_type: type) -> TableDescriptor:
    """Return the cached descriptor for *entity_type*, deriving it once.

    Raises:
        EntityDefinitionError: class not registered or invariants violated
        UnsupportedTypeError: a field type has no column mapping
    """
    descriptor = _DESCRIPTORS.get(entity_type)
    if descriptor is not None:
        return descriptor
    with _LOCK:
        descriptor = _DESCRIPTORS.get(entity_type)
        if descriptor is None:
            descriptor = _build_descriptor(entity_type)
            _DESCRIPTORS[entity_type] = descriptor
    return descriptor


def registered_entities() -> list[type]:
    """Every class registered with ``@table``, in declaration order."""
    with _LOCK:
        return list(_REGISTRY)


__all__ = [
    "FieldType",
    "INTEGER_TYPES",
    "NUMERIC_TYPES",
    "FieldDescriptor",
    "TableDescriptor",
    "column",
    "table",
    "describe",
    "registered_entities",
]
