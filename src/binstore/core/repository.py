"""Generic per-entity repository.

Provides :class:`EntityRepository` — the add / get / update / delete / list /
page / find operations every stored entity shares, written once against the
table descriptor instead of once per entity.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                    EntityRepository[T]                             │
    │                                                                    │
    │   table: TableDescriptor    ← describe(entity_type)                │
    │   executor: SqlExecutor     ← one connection per call              │
    │   pages: PageQueryBuilder   ← sort allow-list + ownership scope    │
    │   translator: PredicateTranslator                                  │
    │                                                                    │
    │   add(record, ctx)            → record with generated key          │
    │   get(key, ctx)               → record | None                      │
    │   get_by(field, value, ctx)   → record | None                      │
    │   find(predicate, ctx)        → list[record]                       │
    │   list(ctx)                   → list[record]                       │
    │   count(ctx, predicate)       → int                                │
    │   page(request, ctx, pred.)   → PaginatedResponse[record]          │
    │   update(record, ctx)         → record  (RecordNotFoundError)      │
    │   delete(record | key, ctx)   → bool                               │
    │   delete_where(pred., ctx)    → int                                │
    │   get_or_create(record, match, ctx) → record                       │
    └────────────────────────────────────────────────────────────────────┘

Logging:
    Each operation binds ``table``, ``operation`` and ``owner`` to the structlog
    context, so the executor's ``sql.execute`` lines carry them too.

Ownership:
    Writes stamp ``ctx.user_id`` onto a copy of the record when a context is
    given; the caller's instance is never mutated.  Every read, update and
    delete is filtered by the ownership scope.

Atomicity:
    ``update`` is a single ``UPDATE ... WHERE key AND scope``; zero affected
    rows means not found.  ``get_or_create`` is a single conditional
    ``INSERT ... SELECT ... WHERE NOT EXISTS`` followed by a read; two callers
    racing on an empty table can still both insert, because the match
    columns carry no uniqueness constraint.

Tags:
    repository, crud, pagination, tenant-scope, binstore
"""

from __future__ import annotations

import builtins
import dataclasses
from collections.abc import Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

from binstore.core.errors import RecordNotFoundError
from binstore.core.executor import SqlExecutor
from binstore.core.logging import LogContext, get_logger
from binstore.core.paging import (
    PageQueryBuilder,
    PaginatedRequest,
    PaginatedResponse,
    combine_where,
)
from binstore.core.predicate import F, Predicate, PredicateTranslator, WhereClause, all_of
from binstore.core.protocols import OwnershipContext, owner_id
from binstore.core.schema.model import FieldDescriptor, TableDescriptor, describe

T = TypeVar("T")

logger = get_logger(__name__)


def _is_unset(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, UUID) and value.int == 0)


class EntityRepository(Generic[T]):
    """Query contract for one entity type.

    Parameters:
        executor: Shared :class:`SqlExecutor`.
        entity_type: A dataclass registered with ``@table``.
    """

    def __init__(self, executor: SqlExecutor, entity_type: type[T]) -> None:
        self.executor = executor
        self.dialect = executor.dialect
        self.table: TableDescriptor = describe(entity_type)
        self.pages = PageQueryBuilder(self.table, self.dialect)
        self.translator = PredicateTranslator(self.table, self.dialect, executor.codec)

    # -- helpers -----------------------------------------------------------

    @property
    def _from(self) -> str:
        return f"FROM {self.dialect.quote(self.table.name)}"

    @property
    def _order_by_key(self) -> str:
        return f"ORDER BY {self.dialect.quote(self.table.key.name)}"

    def _log_context(self, operation: str, ctx: OwnershipContext | None) -> LogContext:
        return LogContext(table=self.table.name, operation=operation, owner=owner_id(ctx))

    def _stamp(self, record: T, ctx: OwnershipContext | None) -> T:
        if ctx is None or self.table.owner is None:
            return record
        return dataclasses.replace(record, **{self.table.owner: ctx.user_id})

    def _where(
        self, predicate: Predicate | None, ctx: OwnershipContext | None
    ) -> tuple[str, dict[str, Any]]:
        clause: WhereClause | None = None
        if predicate is not None:
            clause = self.translator.translate(predicate)
        sql = combine_where(self.pages.scope.clause(), clause.sql if clause else None)
        params = dict(clause.parameters) if clause else {}
        params.update(self.executor.binder.bind(self.pages.scope.params(ctx)))
        return sql, params

    def _insert_fields(self, record: T) -> list[FieldDescriptor]:
        fields = []
        for f in self.table.fields:
            if f.is_key and (f.is_auto_increment or _is_unset(getattr(record, f.name))):
                continue
            fields.append(f)
        return fields

    def _key_of(self, record_or_key: Any) -> Any:
        if isinstance(record_or_key, self.table.entity_type):
            return getattr(record_or_key, self.table.key.name)
        return record_or_key

    # -- writes ------------------------------------------------------------

    def add(self, record: T, ctx: OwnershipContext | None = None) -> T:
        """Insert *record* and return a copy carrying the stored key."""
        with self._log_context("add", ctx):
            stamped = self._stamp(record, ctx)
            params = self.executor.binder.bind(stamped)
            columns = [f.name for f in self._insert_fields(stamped)]
            sql = self.dialect.insert_returning(self.table.name, columns, self.table.key.name)
            raw_key = self.executor.insert(sql, {c: params[c] for c in columns})
            key = self.executor.codec.decode(raw_key, self.table.key)
            logger.debug("repository.added", key=str(key))
            return dataclasses.replace(stamped, **{self.table.key.name: key})

    def update(self, record: T, ctx: OwnershipContext | None = None) -> T:
        """Update every non-key column of the row with *record*'s key.

        Raises:
            RecordNotFoundError: no row with that key inside the ownership scope
        """
        d = self.dialect
        key = self.table.key.name
        with self._log_context("update", ctx):
            assignments = ", ".join(
                f"{d.quote(f.name)} = :{f.name}"
                for f in self.table.fields
                if not f.is_key and f.name != self.table.owner
            )
            scope_sql, scope_params = self._where(None, ctx)
            condition = f"{d.quote(key)} = :{key}"
            where = f"{scope_sql} AND {condition}" if scope_sql else f" WHERE {condition}"
            sql = f"UPDATE {d.quote(self.table.name)} SET {assignments}{where}"

            params = self.executor.binder.bind(record)
            params.update(scope_params)
            if self.executor.execute(sql, params) == 0:
                raise RecordNotFoundError(
                    f"Record not found: {self.table.name} {key}={getattr(record, key)!r}",
                    key=getattr(record, key),
                ).with_context(table=self.table.name, operation="update")
            logger.debug("repository.updated", key=str(getattr(record, key)))
            return record

    def delete(self, record_or_key: Any, ctx: OwnershipContext | None = None) -> bool:
        """Delete by record or key; ``True`` if a row was removed."""
        key_value = self._key_of(record_or_key)
        return self.delete_where(F(self.table.key.name) == key_value, ctx) > 0

    def delete_where(self, predicate: Predicate, ctx: OwnershipContext | None = None) -> int:
        """Delete every row matching *predicate* in scope; return the count."""
        with self._log_context("delete", ctx):
            where, params = self._where(predicate, ctx)
            removed = self.executor.execute(f"DELETE {self._from}{where}", params)
            logger.debug("repository.deleted", removed=removed)
            return removed

    def get_or_create(
        self,
        record: T,
        match: Sequence[str],
        ctx: OwnershipContext | None = None,
    ) -> T:
        """Return the row matching *record* on *match* fields, inserting it if absent.

        The insert is one conditional statement; see the module notes on the
        remaining race between concurrent callers.
        """
        d = self.dialect
        with self._log_context("get_or_create", ctx):
            stamped = self._stamp(record, ctx)
            match_pred = all_of(*(F(name) == getattr(stamped, name) for name in match))
            where, params = self._where(match_pred, ctx)

            bound = self.executor.binder.bind(stamped)
            fields = self._insert_fields(stamped)
            for f in fields:
                params[f"v_{f.name}"] = bound[f.name]
            columns = ", ".join(d.quote(f.name) for f in fields)
            values = ", ".join(d.param(f"v_{f.name}", f.kind) for f in fields)
            sql = (
                f"INSERT INTO {d.quote(self.table.name)} ({columns}) "
                f"SELECT {values} WHERE NOT EXISTS (SELECT 1 {self._from}{where})"
            )
            if self.executor.execute(sql, params):
                logger.debug("repository.created")

            found = self.find(match_pred, ctx)
            if not found:
                raise RecordNotFoundError(
                    f"{self.table.name} row vanished after get-or-create"
                ).with_context(table=self.table.name, operation="get_or_create")
            return found[0]

    # -- reads -------------------------------------------------------------

    def find(self, predicate: Predicate | None = None, ctx: OwnershipContext | None = None) -> builtins.list[T]:
        """All rows matching *predicate* inside the ownership scope, by key."""
        with self._log_context("find", ctx):
            where, params = self._where(predicate, ctx)
            sql = f"SELECT * {self._from}{where} {self._order_by_key}"
            return self.executor.query(sql, self.table, params)

    def list(self, ctx: OwnershipContext | None = None) -> builtins.list[T]:
        return self.find(None, ctx)

    def get(self, key: Any, ctx: OwnershipContext | None = None) -> T | None:
        return self.get_by(self.table.key.name, key, ctx)

    def get_by(self, field: str, value: Any, ctx: OwnershipContext | None = None) -> T | None:
        """First row (by key) whose *field* equals *value*, or ``None``."""
        rows = self.find(F(field) == value, ctx)
        return rows[0] if rows else None

    def count(self, ctx: OwnershipContext | None = None, predicate: Predicate | None = None) -> int:
        with self._log_context("count", ctx):
            where, params = self._where(predicate, ctx)
            return int(self.executor.scalar(f"SELECT COUNT(*) {self._from}{where}", params) or 0)

    def page(
        self,
        request: PaginatedRequest,
        ctx: OwnershipContext | None = None,
        predicate: Predicate | None = None,
    ) -> PaginatedResponse[T]:
        """One page plus the total row count.

        ``request.by`` / ``request.value`` adds an equality filter; an unknown
        ``by`` field raises :class:`~binstore.core.errors.TranslationError`.
        """
        request.validate()
        terms = [p for p in (predicate,) if p is not None]
        if request.by is not None:
            terms.append(F(request.by) == request.value)

        with self._log_context("page", ctx):
            clause = self.translator.translate(all_of(*terms)) if terms else None

            scope = self.executor.binder.bind(self.pages.scope.params(ctx))
            count_sql, count_params = self.pages.count_query(clause)
            count_params.update(scope)
            total = int(self.executor.scalar(count_sql, count_params) or 0)

            page_sql, page_params = self.pages.page_query(request, clause)
            page_params.update(scope)
            items = self.executor.query(page_sql, self.table, page_params)
        return PaginatedResponse(
            total_items=total,
            page_size=request.results,
            page_number=request.page,
            items=items,
        )


__all__ = ["EntityRepository"]
