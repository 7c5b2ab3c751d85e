"""
Generic Row Store Interface.

The billing core reads and writes rows in tables whose schema is owned by an
external collaborator. Services talk to those tables through a small
builder interface instead of ORM models:

    rows = await store.table("claim_denials") \\
        .or_(Condition.eq("company_id", cid), Condition.is_null("company_id")) \\
        .order("denial_date", descending=True) \\
        .limit(200) \\
        .fetch()

Backends implement the four ``execute_*`` primitives. Any backend failure
surfaces as ``StoreError``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence, Union


class StoreError(Exception):
    """A data store operation failed (bad table, unknown column, backend error)."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.table = table
        self.original_error = original_error


class FilterOp(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    ILIKE = "ilike"
    IS_NULL = "is_null"


@dataclass(frozen=True)
class Condition:
    """One column predicate."""

    column: str
    op: FilterOp
    value: Any = None

    @classmethod
    def eq(cls, column: str, value: Any) -> "Condition":
        return cls(column, FilterOp.EQ, value)

    @classmethod
    def ilike(cls, column: str, pattern: str) -> "Condition":
        return cls(column, FilterOp.ILIKE, pattern)

    @classmethod
    def is_null(cls, column: str) -> "Condition":
        return cls(column, FilterOp.IS_NULL)


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of predicates; matches when at least one condition holds."""

    conditions: tuple[Condition, ...]


Predicate = Union[Condition, AnyOf]


@dataclass
class QuerySpec:
    """Backend-neutral description of a filtered, ordered, paged query."""

    table: str
    predicates: list[Predicate] = field(default_factory=list)
    order_by: list[tuple[str, bool]] = field(default_factory=list)  # (column, descending)
    limit: Optional[int] = None
    offset: int = 0
    columns: Optional[list[str]] = None

    def referenced_columns(self) -> set[str]:
        names: set[str] = set()
        for predicate in self.predicates:
            if isinstance(predicate, AnyOf):
                names.update(c.column for c in predicate.conditions)
            else:
                names.add(predicate.column)
        names.update(column for column, _ in self.order_by)
        if self.columns:
            names.update(self.columns)
        return names


class Query:
    """Chainable query builder bound to one table of a ``DataStore``."""

    def __init__(self, store: "DataStore", table: str):
        self._store = store
        self.spec = QuerySpec(table=table)

    # -- projection -----------------------------------------------------------

    def select(self, *columns: str) -> "Query":
        self.spec.columns = list(columns) if columns else None
        return self

    # -- predicates -----------------------------------------------------------

    def _add(self, column: str, op: FilterOp, value: Any = None) -> "Query":
        self.spec.predicates.append(Condition(column, op, value))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self._add(column, FilterOp.EQ, value)

    def neq(self, column: str, value: Any) -> "Query":
        return self._add(column, FilterOp.NEQ, value)

    def gt(self, column: str, value: Any) -> "Query":
        return self._add(column, FilterOp.GT, value)

    def gte(self, column: str, value: Any) -> "Query":
        return self._add(column, FilterOp.GTE, value)

    def lt(self, column: str, value: Any) -> "Query":
        return self._add(column, FilterOp.LT, value)

    def lte(self, column: str, value: Any) -> "Query":
        return self._add(column, FilterOp.LTE, value)

    def in_(self, column: str, values: Sequence[Any]) -> "Query":
        return self._add(column, FilterOp.IN, list(values))

    def ilike(self, column: str, pattern: str) -> "Query":
        return self._add(column, FilterOp.ILIKE, pattern)

    def is_null(self, column: str) -> "Query":
        return self._add(column, FilterOp.IS_NULL)

    def or_(self, *conditions: Condition) -> "Query":
        if not conditions:
            raise ValueError("or_ requires at least one condition")
        self.spec.predicates.append(AnyOf(tuple(conditions)))
        return self

    # -- ordering and paging --------------------------------------------------

    def order(self, column: str, descending: bool = False) -> "Query":
        self.spec.order_by.append((column, descending))
        return self

    def limit(self, count: int) -> "Query":
        self.spec.limit = count
        return self

    def range(self, start: int, end: int) -> "Query":
        """Inclusive row range, ``range(0, 9)`` returns the first ten rows."""
        self.spec.offset = start
        self.spec.limit = max(end - start + 1, 0)
        return self

    # -- terminal operations --------------------------------------------------

    async def fetch(self) -> list[dict[str, Any]]:
        return await self._store.execute_select(self.spec)

    async def fetch_one(self) -> Optional[dict[str, Any]]:
        """First row or ``None``; a missing row is not an error."""
        self.spec.limit = 1
        rows = await self._store.execute_select(self.spec)
        return rows[0] if rows else None

    async def insert(
        self, rows: Union[dict[str, Any], list[dict[str, Any]]]
    ) -> list[dict[str, Any]]:
        payload = [rows] if isinstance(rows, dict) else list(rows)
        if not payload:
            return []
        return await self._store.execute_insert(self.spec.table, payload)

    async def update(self, values: dict[str, Any]) -> list[dict[str, Any]]:
        """Apply ``values`` to matching rows and return the updated rows."""
        return await self._store.execute_update(self.spec, values)

    async def delete(self) -> list[dict[str, Any]]:
        """Delete matching rows and return them."""
        return await self._store.execute_delete(self.spec)


class DataStore(ABC):
    """Abstract row store."""

    def table(self, name: str) -> Query:
        return Query(self, name)

    @abstractmethod
    async def execute_select(self, spec: QuerySpec) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def execute_insert(
        self, table: str, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def execute_update(
        self, spec: QuerySpec, values: dict[str, Any]
    ) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def execute_delete(self, spec: QuerySpec) -> list[dict[str, Any]]:
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None
