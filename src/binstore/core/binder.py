"""Parameter binding for records and ad-hoc maps."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from binstore.core.codec import ValueCodec
from binstore.core.schema.model import TableDescriptor, describe


class ParameterBinder:
    """Build named parameter sets from entity records or plain mappings.

    Every public field of a record is bound, whether the statement uses it or
    not; SQLAlchemy ignores bind values a ``text()`` construct does not
    reference.  Keyword ``extra`` values are encoded too and win over record
    fields of the same name.
    """

    def __init__(self, codec: ValueCodec):
        self.codec = codec

    def bind(self, source: Any = None, /, **extra: Any) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if source is None:
            pass
        elif isinstance(source, Mapping):
            for name, value in source.items():
                params[name] = self.codec.encode(value)
        elif dataclasses.is_dataclass(source) and not isinstance(source, type):
            params.update(self._bind_record(source))
        else:
            raise TypeError(
                f"Cannot bind parameters from {type(source).__name__}; "
                "expected a dataclass record or a mapping"
            )
        for name, value in extra.items():
            params[name] = self.codec.encode(value)
        return params

    def _bind_record(self, record: Any) -> dict[str, Any]:
        table: TableDescriptor = describe(type(record))
        return {
            f.name: self.codec.encode(getattr(record, f.name), f)
            for f in table.fields
        }


__all__ = ["ParameterBinder"]
