"""
Typed predicates over entity fields and their translation to SQL.

Callers never write WHERE clauses.  They build a small immutable AST with
:class:`F` field references and Python operators; the translator turns it
into a parameterized fragment in which every operand is a bind parameter.

Manifesto:
    - **No literals in SQL:** Every comparison operand becomes a placeholder
    - **Unique names:** ``w{position}_{Field}`` never collides with the
      ownership (``UserId``) or paging parameters of the enclosing query
    - **Fail before executing:** Unknown fields and operators raise
      :class:`TranslationError` during translation
    - **Syntax-directed:** No simplification, no reordering

Architecture:
    ::

        (F("PartTypeId") == 3) & (F("Quantity") > 10)
                    │
                    ▼
        And(terms=(Comparison("PartTypeId", EQ, 3),
                   Comparison("Quantity", GT, 10)))
                    │  PredicateTranslator(table, dialect, codec)
                    ▼
        WhereClause(
            sql='("PartTypeId" = :w0_PartTypeId AND "Quantity" > :w1_Quantity)',
            parameters={"w0_PartTypeId": 3, "w1_Quantity": 10},
        )

Examples:
    >>> p = F("Name").startswith("Res") | F("PartTypeId").in_([1, 2])
    >>> isinstance(p, Or)
    True

Tags:
    predicate, ast, sql, translation, binstore
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from binstore.core.codec import ValueCodec
from binstore.core.dialect import Dialect
from binstore.core.errors import TranslationError
from binstore.core.schema.model import TableDescriptor
from binstore.core.types import FieldType


class Operator(str, enum.Enum):
    """Supported comparison operators."""

    EQ = "="
    NE = "<>"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    IN = "IN"
    NOT_IN = "NOT IN"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"


_ORDERING = {Operator.LT, Operator.LE, Operator.GT, Operator.GE}
_MEMBERSHIP = {Operator.IN, Operator.NOT_IN}
_PATTERN = {Operator.CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH}

_LIKE_ESCAPE = "!"


class Predicate:
    """Base of all predicate nodes; ``&`` and ``|`` combine them."""

    __slots__ = ()

    def __and__(self, other: Predicate) -> And:
        return all_of(self, other)

    def __or__(self, other: Predicate) -> Or:
        return any_of(self, other)


@dataclass(frozen=True, slots=True)
class Comparison(Predicate):
    field: str
    op: Operator | str
    value: Any = None


@dataclass(frozen=True, slots=True)
class And(Predicate):
    terms: tuple[Predicate, ...] = ()


@dataclass(frozen=True, slots=True)
class Or(Predicate):
    terms: tuple[Predicate, ...] = ()


def all_of(*predicates: Predicate) -> And:
    """AND of *predicates*, flattening nested ANDs."""
    terms: list[Predicate] = []
    for p in predicates:
        terms.extend(p.terms if isinstance(p, And) else (p,))
    return And(tuple(terms))


def any_of(*predicates: Predicate) -> Or:
    """OR of *predicates*, flattening nested ORs."""
    terms: list[Predicate] = []
    for p in predicates:
        terms.extend(p.terms if isinstance(p, Or) else (p,))
    return Or(tuple(terms))


class F:
    """Field reference used to build comparisons.

    ``F("Quantity") > 5`` builds ``Comparison("Quantity", Operator.GT, 5)``.
    Comparing with ``None`` through ``==`` / ``!=`` builds an ``IS [NOT] NULL``
    test.
    """

    __slots__ = ("name",)
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, value: Any) -> Comparison:  # type: ignore[override]
        if value is None:
            return Comparison(self.name, Operator.IS_NULL)
        return Comparison(self.name, Operator.EQ, value)

    def __ne__(self, value: Any) -> Comparison:  # type: ignore[override]
        if value is None:
            return Comparison(self.name, Operator.IS_NOT_NULL)
        return Comparison(self.name, Operator.NE, value)

    def __lt__(self, value: Any) -> Comparison:
        return Comparison(self.name, Operator.LT, value)

    def __le__(self, value: Any) -> Comparison:
        return Comparison(self.name, Operator.LE, value)

    def __gt__(self, value: Any) -> Comparison:
        return Comparison(self.name, Operator.GT, value)

    def __ge__(self, value: Any) -> Comparison:
        return Comparison(self.name, Operator.GE, value)

    def in_(self, values: Iterable[Any]) -> Comparison:
        return Comparison(self.name, Operator.IN, tuple(values))

    def not_in(self, values: Iterable[Any]) -> Comparison:
        return Comparison(self.name, Operator.NOT_IN, tuple(values))

    def contains(self, text: str) -> Comparison:
        return Comparison(self.name, Operator.CONTAINS, text)

    def startswith(self, text: str) -> Comparison:
        return Comparison(self.name, Operator.STARTS_WITH, text)

    def endswith(self, text: str) -> Comparison:
        return Comparison(self.name, Operator.ENDS_WITH, text)

    def is_null(self) -> Comparison:
        return Comparison(self.name, Operator.IS_NULL)

    def is_not_null(self) -> Comparison:
        return Comparison(self.name, Operator.IS_NOT_NULL)

    def __repr__(self) -> str:
        return f"F({self.name!r})"


@dataclass(frozen=True, slots=True)
class WhereClause:
    """A translated filter fragment and its parameters."""

    sql: str
    parameters: dict[str, Any] = field(default_factory=dict)


def _escape_like(text: str) -> str:
    for ch in (_LIKE_ESCAPE, "%", "_", "["):
        text = text.replace(ch, _LIKE_ESCAPE + ch)
    return text


class PredicateTranslator:
    """Translate a predicate over one table into a :class:`WhereClause`."""

    def __init__(
        self,
        table: TableDescriptor,
        dialect: Dialect,
        codec: ValueCodec,
        *,
        prefix: str = "w",
    ):
        self.table = table
        self.dialect = dialect
        self.codec = codec
        self.prefix = prefix

    def translate(self, predicate: Predicate) -> WhereClause:
        """Translate *predicate*.

        Raises:
            TranslationError: unknown field, unsupported operator, or an
                operand that does not fit the operator
        """
        params: dict[str, Any] = {}
        sql = self._node(predicate, params)
        return WhereClause(sql=sql, parameters=params)

    # -- internals ----------------------------------------------------------

    def _node(self, node: Predicate, params: dict[str, Any]) -> str:
        if isinstance(node, Comparison):
            return self._comparison(node, params)
        if isinstance(node, (And, Or)):
            if not node.terms:
                return "1 = 1" if isinstance(node, And) else "1 = 0"
            joiner = " AND " if isinstance(node, And) else " OR "
            return "(" + joiner.join(self._node(t, params) for t in node.terms) + ")"
        raise TranslationError(
            f"Unsupported predicate node {type(node).__name__}"
        ).with_context(table=self.table.name)

    def _bind(self, params: dict[str, Any], field_name: str, value: Any) -> str:
        name = f"{self.prefix}{len(params)}_{field_name}"
        params[name] = value
        return f":{name}"

    def _comparison(self, node: Comparison, params: dict[str, Any]) -> str:
        if not self.table.has_field(node.field):
            raise TranslationError(
                f"Unknown field {node.field!r} on {self.table.name}"
            ).with_context(table=self.table.name, field=node.field)
        desc = self.table.field(node.field)
        try:
            op = Operator(node.op)
        except ValueError:
            raise TranslationError(
                f"Unsupported operator {node.op!r}"
            ).with_context(table=self.table.name, field=node.field) from None

        column = self.dialect.quote(desc.name)
        value = self.dialect.column_value(column, desc.kind)

        if op is Operator.IS_NULL:
            return f"{column} IS NULL"
        if op is Operator.IS_NOT_NULL:
            return f"{column} IS NOT NULL"
        if op in (Operator.EQ, Operator.NE) and node.value is None:
            return f"{column} IS {'NOT ' if op is Operator.NE else ''}NULL"

        if op in _MEMBERSHIP:
            if isinstance(node.value, (str, bytes)) or not isinstance(node.value, Iterable):
                raise TranslationError(
                    f"{op.value} needs a collection of values"
                ).with_context(table=self.table.name, field=desc.name)
            values = list(node.value)
            if not values:
                return "1 = 0" if op is Operator.IN else "1 = 1"
            placeholders = ", ".join(
                self._bind(params, desc.name, self.codec.encode(v, desc)) for v in values
            )
            return f"{value} {op.value} ({placeholders})"

        if op in _PATTERN:
            if desc.kind not in (FieldType.TEXT, FieldType.TEXT_COLLECTION):
                raise TranslationError(
                    f"{op.value} applies to text fields only"
                ).with_context(table=self.table.name, field=desc.name)
            if not isinstance(node.value, str):
                raise TranslationError(
                    f"{op.value} needs a text operand"
                ).with_context(table=self.table.name, field=desc.name)
            escaped = _escape_like(node.value)
            pattern = {
                Operator.CONTAINS: f"%{escaped}%",
                Operator.STARTS_WITH: f"{escaped}%",
                Operator.ENDS_WITH: f"%{escaped}",
            }[op]
            placeholder = self._bind(params, desc.name, pattern)
            return f"{column} LIKE {placeholder} ESCAPE '{_LIKE_ESCAPE}'"

        if node.value is None and op in _ORDERING:
            raise TranslationError(
                f"Cannot compare {desc.name} {op.value} NULL"
            ).with_context(table=self.table.name, field=desc.name)

        placeholder = self._bind(params, desc.name, self.codec.encode(node.value, desc))
        return f"{value} {op.value} {placeholder}"


__all__ = [
    "Operator",
    "Predicate",
    "Comparison",
    "And",
    "Or",
    "F",
    "all_of",
    "any_of",
    "WhereClause",
    "PredicateTranslator",
]
