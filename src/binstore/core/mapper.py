"""Row mapping: result rows back into entity records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from binstore.core.codec import ValueCodec
from binstore.core.schema.model import TableDescriptor

T = TypeVar("T")


def _as_mapping(row: Any) -> Mapping[str, Any]:
    if isinstance(row, Mapping):
        return row
    # sqlalchemy.engine.Row
    return row._mapping


class RowMapper:
    """Materialize entity records from result rows.

    A field is populated only when the row has a column whose name matches
    it exactly (case-sensitive); any other field keeps its dataclass
    default.  Extra columns are ignored.  A decode failure in any column
    propagates and aborts the read.
    """

    def __init__(self, codec: ValueCodec):
        self.codec = codec

    def map_row(self, row: Any, table: TableDescriptor) -> Any:
        cells = _as_mapping(row)
        values = {
            f.name: self.codec.decode(cells[f.name], f)
            for f in table.fields
            if f.name in cells
        }
        return table.entity_type(**values)

    def map_rows(self, rows: Iterable[Any], table: TableDescriptor) -> list[Any]:
        return [self.map_row(row, table) for row in rows]


__all__ = ["RowMapper"]
