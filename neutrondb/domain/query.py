"""
Chainable query builder for neutrondb models.

A `QueryBuilder` owns one `QueryState` (AND-joined predicates, limit, offset,
a single ORDER BY) and turns it into parameterized SQL:

    SELECT * FROM <table> [WHERE p1 AND p2 ...] [ORDER BY c ASC|DESC] [LIMIT n] [OFFSET k]

Identifiers (table, columns) are checked against an allow-listed pattern
and then quoted for the dialect before they are interpolated, so reserved
words such as `order` work as column names. Quoted names are
case-sensitive on PostgreSQL. Values only ever travel as bound parameters
named `<column>_<position>`. The same state always yields the same SQL text.

Each `Model.query()` call creates a new builder, so predicates never leak
from one logical query into another. Methods mutate and return the builder
itself for chaining.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from neutrondb.exceptions import ExecutionError, ValidationError
from neutrondb.utils.logging import get_logger

if TYPE_CHECKING:
    from neutrondb.domain.models import Model
    from neutrondb.infrastructure.connection import Connection

log = get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
OPERATORS = ("=", "!=", ">", ">=", "<", "<=", "LIKE")
DIRECTIONS = ("ASC", "DESC")

_SCALAR_TYPES = (str, int, float, bool, bytes, Decimal, date, datetime, time, type(None))

M = TypeVar("M", bound="Model")


def validate_identifier(name: Any, kind: str = "column") -> str:
    """Return `name` if it is a plain SQL identifier, else raise ValidationError."""
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise ValidationError(f"Invalid {kind} name: {name!r}")
    return name


def normalize_operator(operator: Any) -> str:
    if not isinstance(operator, str):
        raise ValidationError(f"Invalid operator: {operator!r}")
    normalized = operator.strip().upper()
    if normalized not in OPERATORS:
        raise ValidationError(
            f"Invalid operator: {operator!r}. Allowed: {', '.join(OPERATORS)}"
        )
    return normalized


def normalize_direction(direction: Any) -> str:
    """ASC or DESC; anything unrecognized falls back to ASC."""
    if isinstance(direction, str) and direction.strip().upper() in DIRECTIONS:
        return direction.strip().upper()
    return "ASC"


def _validate_count(value: Any, kind: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{kind} must be a non-negative integer, got {value!r}")
    return value


@dataclass(frozen=True)
class Predicate:
    column: str
    operator: str
    value: Any


@dataclass
class QueryState:
    """Accumulated, per-builder query state."""

    predicates: List[Predicate] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    order_by: Optional[Tuple[str, str]] = None


class QueryBuilder(Generic[M]):
    """
    Fluent SELECT builder bound to one model type and one connection.

    Parameters
    ----------
    model : type[Model]
        Model class whose table is queried and whose instances are hydrated.
    connection : Connection
        Execution interface the query runs against.
    """

    def __init__(self, model: Type[M], connection: "Connection") -> None:
        self.model = model
        self.connection = connection
        self.table = validate_identifier(getattr(model, "__table__", None), "table")
        self.state = QueryState()

    # -- state ----------------------------------------------------------------

    def where(self, column: str, operator: str, value: Any) -> "QueryBuilder[M]":
        """Add an AND-joined `column <operator> value` predicate."""
        column = validate_identifier(column)
        operator = normalize_operator(operator)
        if not isinstance(value, _SCALAR_TYPES):
            raise ValidationError(
                f"Value for {column!r} must be a scalar, got {type(value).__name__}"
            )
        self.state.predicates.append(Predicate(column, operator, value))
        return self

    def order_by(self, column: str, direction: str = "ASC") -> "QueryBuilder[M]":
        """Order by a single column; a later call replaces an earlier one."""
        self.state.order_by = (validate_identifier(column), normalize_direction(direction))
        return self

    def limit(self, n: int) -> "QueryBuilder[M]":
        self.state.limit = _validate_count(n, "limit")
        return self

    def offset(self, n: int) -> "QueryBuilder[M]":
        self.state.offset = _validate_count(n, "offset")
        return self

    # -- compilation ------------------------------------------------------------

    def _where_clause(self, state: QueryState) -> Tuple[str, Dict[str, Any]]:
        if not state.predicates:
            return "", {}
        parts: List[str] = []
        params: Dict[str, Any] = {}
        for position, predicate in enumerate(state.predicates):
            name = f"{predicate.column}_{position}"
            parts.append(
                f"{self.connection.quote(predicate.column)} {predicate.operator} "
                f"{self.connection.placeholder(name)}"
            )
            params[name] = predicate.value
        return " WHERE " + " AND ".join(parts), params

    def _paging_clause(self, state: QueryState) -> str:
        sql = ""
        if state.limit is not None:
            sql += f" LIMIT {state.limit}"
        elif state.offset is not None:
            # sqlite and mysql reject a bare OFFSET.
            sql += f" LIMIT {self.connection.backend.unbounded_limit}"
        if state.offset is not None:
            sql += f" OFFSET {state.offset}"
        return sql

    def _compile(self, state: QueryState) -> Tuple[str, Dict[str, Any]]:
        where, params = self._where_clause(state)
        sql = f"SELECT * FROM {self.connection.quote(self.table)}{where}"
        if state.order_by is not None:
            column, direction = state.order_by
            sql += f" ORDER BY {self.connection.quote(column)} {direction}"
        sql += self._paging_clause(state)
        return sql, params

    def to_sql(self) -> Tuple[str, Dict[str, Any]]:
        """Compile the current state into `(sql, params)` without executing it."""
        return self._compile(self.state)

    def exists_sql(self) -> Tuple[str, Dict[str, Any]]:
        where, params = self._where_clause(self.state)
        return f"SELECT 1 FROM {self.connection.quote(self.table)}{where} LIMIT 1", params

    # -- execution --------------------------------------------------------------

    def _fetch(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            return self.connection.query(sql, params)
        except ExecutionError as exc:
            raise ExecutionError(
                f"Query on table {self.table} failed: {exc.message}",
                statement=sql,
                table=self.table,
            ) from exc

    def _run(self, state: QueryState) -> List[M]:
        sql, params = self._compile(state)
        rows = self._fetch(sql, params)
        log.debug("Fetched rows", extra={"table": self.table, "rows": len(rows)})
        return [self.model._hydrate(row, self.connection) for row in rows]

    def get(self) -> List[M]:
        """Run the SELECT and hydrate every row into a model instance."""
        return self._run(self.state)

    def one(self) -> Optional[M]:
        """First matching record, or None. The builder's own limit is left as is."""
        results = self._run(replace(self.state, limit=1))
        return results[0] if results else None

    def exists(self) -> bool:
        sql, params = self.exists_sql()
        return bool(self._fetch(sql, params))

    def __repr__(self) -> str:
        return f"<QueryBuilder {self.to_sql()[0]!r}>"


__all__ = [
    "IDENTIFIER_PATTERN",
    "OPERATORS",
    "Predicate",
    "QueryState",
    "QueryBuilder",
    "validate_identifier",
    "normalize_direction",
    "normalize_operator",
]
