"""Semantic field types shared by the schema model, dialects and codec."""

from __future__ import annotations

import enum


class FieldType(str, enum.Enum):
    """Semantic column types understood by the engine."""

    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT = "float"
    DECIMAL = "decimal"
    TEXT = "text"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DURATION = "duration"
    UUID = "uuid"
    BYTES = "bytes"
    ENUM = "enum"
    TEXT_COLLECTION = "text_collection"


INTEGER_TYPES = frozenset({FieldType.INT8, FieldType.INT16, FieldType.INT32, FieldType.INT64})
NUMERIC_TYPES = INTEGER_TYPES | {FieldType.FLOAT, FieldType.DECIMAL}

__all__ = ["FieldType", "INTEGER_TYPES", "NUMERIC_TYPES"]
