"""Schema model, DDL generation and synchronization."""

from binstore.core.schema.generator import DdlStatement, SchemaGenerator, requires_value
from binstore.core.schema.model import (
    FieldDescriptor,
    FieldType,
    TableDescriptor,
    column,
    describe,
    registered_entities,
    table,
)
from binstore.core.schema.sync import SchemaSyncResult, SchemaSynchronizer

__all__ = [
    "FieldType",
    "FieldDescriptor",
    "TableDescriptor",
    "column",
    "table",
    "describe",
    "registered_entities",
    "DdlStatement",
    "SchemaGenerator",
    "requires_value",
    "SchemaSyncResult",
    "SchemaSynchronizer",
]
