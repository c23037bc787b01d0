"""
Paginated, sortable queries and the ownership scope.

Manifesto:
    Sorting is where dynamic SQL usually goes wrong: the caller names a
    column and the code formats it into ``ORDER BY``.  Here the caller's
    sort key is only ever a *bind parameter*.  The ORDER BY clause is a fixed
    chain of ``CASE WHEN :OrderBy = 'X' THEN "X" END`` branches built from the
    entity's static allow-list, so the SQL text is the same whatever the
    caller sends.

    - **Allow-list only:** Sortable columns come from the table descriptor
    - **Fallback to key:** Unknown or absent sort keys sort by primary key
    - **Direction from an enum:** ASC/DESC keyword comes from a fixed map
    - **Uniform ownership scope:** ``(:UserId IS NULL OR "UserId" = :UserId)``

Architecture:
    ::

        PaginatedRequest(page=2, results=10, order_by="Cost", direction=DESC)
                │
                ▼
        PageQueryBuilder(table, dialect)
          count_query(where)  → SELECT COUNT(*) FROM "Parts" WHERE <scope> AND <where>
          page_query(req, where)
                              → SELECT * FROM "Parts" WHERE <scope> AND <where>
                                ORDER BY
                                  CASE WHEN :OrderBy IS NULL THEN "PartId" END DESC,
                                  CASE WHEN :OrderBy = 'Cost' THEN "Cost" END DESC,
                                  ...,
                                  "PartId" DESC
                                LIMIT :PageSize OFFSET :PageOffset

Tags:
    pagination, sorting, tenant-scope, sql, binstore
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from binstore.core.dialect import Dialect
from binstore.core.errors import InvalidPageError
from binstore.core.predicate import WhereClause
from binstore.core.protocols import OwnershipContext, owner_id
from binstore.core.schema.model import TableDescriptor
from binstore.core.types import FieldType

T = TypeVar("T")

ORDER_BY_PARAM = "OrderBy"
PAGE_SIZE_PARAM = "PageSize"
PAGE_OFFSET_PARAM = "PageOffset"


class SortDirection(str, enum.Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


_DIRECTION_SQL = {SortDirection.ASCENDING: "ASC", SortDirection.DESCENDING: "DESC"}


@dataclass(frozen=True, slots=True)
class PaginatedRequest:
    """One page request.

    ``by`` / ``value`` is an optional equality filter on a single field
    (e.g. all parts in one bin); it is translated like any predicate.
    """

    page: int = 1
    results: int = 25
    order_by: str | None = None
    direction: SortDirection = SortDirection.ASCENDING
    by: str | None = None
    value: Any = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.results

    def validate(self) -> None:
        if self.page < 1:
            raise InvalidPageError(f"page must be >= 1, got {self.page}", page=self.page)
        if self.results < 1:
            raise InvalidPageError(
                f"results must be >= 1, got {self.results}", results=self.results
            )


@dataclass(frozen=True, slots=True)
class PaginatedResponse(Generic[T]):
    total_items: int
    page_size: int
    page_number: int
    items: list[T] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return -(-self.total_items // self.page_size) if self.page_size else 0


class OwnershipScope:
    """Render and bind the optional per-row ownership filter."""

    def __init__(self, table: TableDescriptor, dialect: Dialect):
        self.table = table
        self.dialect = dialect

    @property
    def param_name(self) -> str | None:
        return self.table.owner

    def clause(self) -> str | None:
        """``(:UserId IS NULL OR "UserId" = :UserId)`` or ``None`` if unowned."""
        owner = self.table.owner_field
        if owner is None:
            return None
        typed = self.dialect.param(owner.name, owner.kind)
        return f"({typed} IS NULL OR {self.dialect.quote(owner.name)} = :{owner.name})"

    def params(self, ctx: OwnershipContext | None) -> dict[str, Any]:
        if self.table.owner is None:
            return {}
        return {self.table.owner: owner_id(ctx)}


def combine_where(*fragments: str | None) -> str:
    """``WHERE a AND b`` from the non-empty fragments, or ``""``."""
    parts = [f for f in fragments if f]
    return f" WHERE {' AND '.join(parts)}" if parts else ""


class PageQueryBuilder:
    """Build the count and page statements for one table."""

    def __init__(self, table: TableDescriptor, dialect: Dialect):
        self.table = table
        self.dialect = dialect
        self.scope = OwnershipScope(table, dialect)

    def sort_key(self, order_by: str | None) -> str | None:
        """The bound sort key: *order_by* if allow-listed, else ``None``."""
        return order_by if order_by in self.table.sortable else None

    def order_by_clause(self, direction: SortDirection) -> str:
        d = self.dialect
        keyword = _DIRECTION_SQL[SortDirection(direction)]
        key = d.quote(self.table.key.name)
        order_param = d.param(ORDER_BY_PARAM, FieldType.TEXT)
        branches = [f"CASE WHEN {order_param} IS NULL THEN {key} ELSE NULL END {keyword}"]
        for name in self.table.sortable:
            branches.append(
                f"CASE WHEN {order_param} = {d.literal(name)} "
                f"THEN {d.column_value(d.quote(name), self.table.field(name).kind)} "
                f"ELSE NULL END {keyword}"
            )
        branches.append(f"{key} {keyword}")
        return "ORDER BY " + ", ".join(branches)

    def count_query(
        self, where: WhereClause | None = None, ctx: OwnershipContext | None = None
    ) -> tuple[str, dict[str, Any]]:
        sql = f"SELECT COUNT(*) FROM {self.dialect.quote(self.table.name)}"
        sql += combine_where(self.scope.clause(), where.sql if where else None)
        params = dict(where.parameters) if where else {}
        params.update(self.scope.params(ctx))
        return sql, params

    def page_query(
        self,
        request: PaginatedRequest,
        where: WhereClause | None = None,
        ctx: OwnershipContext | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Raises :class:`InvalidPageError` for a page or size below 1."""
        request.validate()
        sql = f"SELECT * FROM {self.dialect.quote(self.table.name)}"
        sql += combine_where(self.scope.clause(), where.sql if where else None)
        sql += " " + self.order_by_clause(request.direction)
        sql += " " + self.dialect.limit_offset(PAGE_SIZE_PARAM, PAGE_OFFSET_PARAM)

        params = dict(where.parameters) if where else {}
        params.update(self.scope.params(ctx))
        params[ORDER_BY_PARAM] = self.sort_key(request.order_by)
        params[PAGE_SIZE_PARAM] = request.results
        params[PAGE_OFFSET_PARAM] = request.offset
        return sql, params


__all__ = [
    "SortDirection",
    "PaginatedRequest",
    "PaginatedResponse",
    "OwnershipScope",
    "PageQueryBuilder",
    "combine_where",
    "ORDER_BY_PARAM",
    "PAGE_SIZE_PARAM",
    "PAGE_OFFSET_PARAM",
]
