"""Idempotent DDL generation from table descriptors.

The generator is pure: it turns descriptors into :class:`DdlStatement`
objects and never touches a connection.  Each statement carries the catalog
probe that tells the synchronizer whether the object already exists.

Schema evolution is forward-only and additive: tables are created when
missing and columns are added when missing.  Nothing is ever dropped or
altered in place.

NOT NULL rule:
    A column is ``NOT NULL DEFAULT <x>`` when it is the key, or when it is
    neither nullable, text, nor a collection.  Text and collection columns
    stay nullable so rows written before the column existed remain valid.
    Generated integer keys carry the dialect's identity modifier instead of
    a default.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from binstore.core.dialect import Dialect
from binstore.core.schema.model import FieldDescriptor, TableDescriptor


@dataclass(frozen=True, slots=True)
class DdlStatement:
    """One guarded DDL statement plus its existence probe."""

    kind: str  # "database" | "table" | "column"
    sql: str
    probe: str | None = None
    probe_params: dict[str, Any] = field(default_factory=dict)
    table: str | None = None
    column: str | None = None


def requires_value(f: FieldDescriptor) -> bool:
    """True when the column is rendered NOT NULL with a default."""
    return f.is_key or (not f.nullable and not f.is_text and not f.is_collection)


class SchemaGenerator:
    """Render create-database / create-table / add-column statements."""

    def __init__(
        self,
        dialect: Dialect,
        tables: Sequence[TableDescriptor],
        database: str | None = None,
    ):
        self.dialect = dialect
        self.tables = tuple(tables)
        self.database = database

    def column_definition(self, f: FieldDescriptor, *, on_alter: bool = False) -> str:
        d = self.dialect
        name = d.quote(f.name)
        if f.is_auto_increment:
            return f"{name} {d.auto_increment_type(f.kind)} NOT NULL {d.auto_increment_suffix()}"
        col_type = d.column_type(f.kind, f.max_length)
        if f.is_key:
            return f"{name} {col_type} NOT NULL DEFAULT {d.default_value(f.kind)} PRIMARY KEY"
        if requires_value(f):
            return f"{name} {col_type} NOT NULL DEFAULT {d.default_value(f.kind, on_alter=on_alter)}"
        return f"{name} {col_type} NULL"

    def create_database(self) -> DdlStatement | None:
        if not self.database:
            return None
        sql = self.dialect.create_database(self.database)
        if sql is None:
            return None
        return DdlStatement(
            kind="database",
            sql=sql,
            probe=self.dialect.database_exists_query(),
            probe_params={"database": self.database},
        )

    def create_table(self, table: TableDescriptor) -> DdlStatement:
        columns = [self.column_definition(f) for f in table.fields]
        return DdlStatement(
            kind="table",
            sql=self.dialect.create_table(table.name, columns),
            probe=self.dialect.table_exists_query(),
            probe_params={"table": table.name},
            table=table.name,
        )

    def add_columns(self, table: TableDescriptor) -> list[DdlStatement]:
        """One add-column statement per non-key field.

        The key column is created with the table and is never added later.
        """
        statements = []
        for f in table.fields:
            if f.is_key:
                continue
            definition = self.column_definition(f, on_alter=True)
            statements.append(
                DdlStatement(
                    kind="column",
                    sql=self.dialect.add_column(table.name, f.name, definition),
                    probe=self.dialect.column_exists_query(),
                    probe_params={"table": table.name, "column": f.name},
                    table=table.name,
                    column=f.name,
                )
            )
        return statements

    def table_statements(self) -> Iterator[DdlStatement]:
        for table in self.tables:
            yield self.create_table(table)
            yield from self.add_columns(table)

    def statements(self) -> list[DdlStatement]:
        """Database statement (if any), then per table: create, add-columns."""
        result: list[DdlStatement] = []
        db = self.create_database()
        if db is not None:
            result.append(db)
        result.extend(self.table_statements())
        return result

    def script(self) -> str:
        """All statements as one script, for review or manual deployment."""
        return ";\n\n".join(s.sql for s in self.statements()) + ";\n"


__all__ = ["DdlStatement", "SchemaGenerator", "requires_value"]
