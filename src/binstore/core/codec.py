"""
Value codec: field values to bind parameters and stored cells back.

Manifesto:
    Entities are written in plain Python types; drivers each have their own
    idea of what a date, a UUID or a decimal looks like on the wire.  The
    codec is the one place that bridges the two, in both directions.

Encode:
    - Sequences of text become one comma-joined string
    - ``datetime.min`` becomes the dialect's storage minimum (SQL Server
      cannot hold year 1)
    - Enum members become their integer value, ``timedelta`` becomes ``time``
    - Timezone-aware date-times are normalised to naive UTC
    - Whatever the driver cannot bind natively goes through ``Dialect.adapt``

Decode:
    - Comma-joined text for a collection field splits, dropping empty segments
    - ``NULL`` becomes the field's zero value (``None`` for nullable and
      reference-like fields, ``0`` / ``False`` / ``datetime.min`` / ... for
      value fields)
    - The storage minimum date-time maps back to ``datetime.min``
    - Driver representations are coerced to the field's Python type

Limitation:
    Empty elements of a collection do not survive a round trip:
    ``["a", "", "b"]`` is stored as ``"a,,b"`` and read back as
    ``["a", "b"]``.  Elements containing a comma are split as well.

Tags:
    codec, serialization, coercion, binstore
"""

from __future__ import annotations

import enum
from collections.abc import Set
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from binstore.core.dialect import Dialect
from binstore.core.errors import CodecError, DecodeError
from binstore.core.schema.model import FieldDescriptor
from binstore.core.types import INTEGER_TYPES, FieldType

DELIMITER = ","

_NIL_UUID = UUID(int=0)


def _duration_to_time(value: timedelta) -> time:
    if value < timedelta(0) or value >= timedelta(days=1):
        raise CodecError(f"Duration {value} does not fit a time column", value=value)
    return (datetime.min + value).time()


def _time_to_duration(value: time) -> timedelta:
    return timedelta(
        hours=value.hour,
        minutes=value.minute,
        seconds=value.second,
        microseconds=value.microsecond,
    )


class ValueCodec:
    """Bidirectional value mapping for one dialect."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    # -- encode ---------------------------------------------------------------

    def encode(self, value: Any, field: FieldDescriptor | None = None) -> Any:
        """Convert a field value into a bind parameter value."""
        if value is None:
            return None
        if isinstance(value, (list, tuple, Set)) and not isinstance(value, (str, bytes)):
            return DELIMITER.join(str(v) for v in value)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc).replace(tzinfo=None)
            if value == datetime.min:
                value = self.dialect.min_datetime
        elif isinstance(value, timedelta):
            value = _duration_to_time(value)
        elif field is not None and field.kind is FieldType.BOOLEAN:
            value = bool(value)
        return self.dialect.adapt(value)

    # -- decode ---------------------------------------------------------------

    def zero_value(self, field: FieldDescriptor) -> Any:
        """Value assigned when the stored cell is NULL."""
        if field.nullable:
            return None
        kind = field.kind
        if kind in INTEGER_TYPES:
            return 0
        if kind is FieldType.FLOAT:
            return 0.0
        if kind is FieldType.DECIMAL:
            return Decimal(0)
        if kind is FieldType.BOOLEAN:
            return False
        if kind is FieldType.DATETIME:
            return datetime.min
        if kind is FieldType.DURATION:
            return timedelta(0)
        if kind is FieldType.UUID:
            return _NIL_UUID
        if kind is FieldType.ENUM:
            return next((m for m in field.enum_type if m.value == 0), None)
        # Text, bytes and collections are reference types.
        return None

    def decode(self, value: Any, field: FieldDescriptor) -> Any:
        """Convert a stored cell into the field's Python value.

        Raises:
            DecodeError: the cell cannot be represented as the field's type
        """
        if value is None:
            return self.zero_value(field)
        try:
            return self._decode(value, field)
        except (ValueError, TypeError, InvalidOperation) as e:
            raise DecodeError(
                f"Cannot decode {type(value).__name__} into {field.kind.value} field {field.name}",
                value=value,
                cause=e,
            ).with_context(field=field.name) from e

    def _decode(self, value: Any, field: FieldDescriptor) -> Any:
        kind = field.kind
        if kind is FieldType.TEXT_COLLECTION:
            items = [s for s in str(value).split(DELIMITER) if s]
            return tuple(items) if field.python_type is tuple else items
        if kind in INTEGER_TYPES:
            if isinstance(value, bool) or not isinstance(value, int):
                return int(value)
            return value
        if kind is FieldType.FLOAT:
            return float(value)
        if kind is FieldType.DECIMAL:
            if isinstance(value, Decimal):
                return value
            return Decimal(str(value))
        if kind is FieldType.BOOLEAN:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "t", "yes")
            return bool(value)
        if kind is FieldType.ENUM:
            return field.enum_type(int(value))
        if kind is FieldType.DATETIME:
            if isinstance(value, str):
                value = datetime.fromisoformat(value)
            elif not isinstance(value, datetime):
                raise TypeError(f"expected datetime, got {type(value).__name__}")
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc).replace(tzinfo=None)
            if value == self.dialect.min_datetime:
                return datetime.min
            return value
        if kind is FieldType.DURATION:
            if isinstance(value, timedelta):
                return value
            if isinstance(value, str):
                value = time.fromisoformat(value)
            if not isinstance(value, time):
                raise TypeError(f"expected time, got {type(value).__name__}")
            return _time_to_duration(value)
        if kind is FieldType.UUID:
            if isinstance(value, UUID):
                return value
            if isinstance(value, (bytes, bytearray)):
                return UUID(bytes=bytes(value))
            return UUID(str(value))
        if kind is FieldType.BYTES:
            return bytes(value)
        if kind is FieldType.TEXT:
            return value if isinstance(value, str) else str(value)
        return value


__all__ = ["DELIMITER", "ValueCodec"]
