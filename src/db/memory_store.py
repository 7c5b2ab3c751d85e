"""
In-Memory Row Store.

Backs demo mode and the test suite. Tables are lists of dict rows; an
optional column schema per table makes unknown tables and columns fail the
way a real database does, which is what the narrow-then-broad denial
loading strategy relies on.
"""

import copy
import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional
from uuid import uuid4

from src.core.coercion import temporal_operands
from src.db.store import AnyOf, Condition, DataStore, FilterOp, Predicate, QuerySpec, StoreError


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _comparable(left: Any, right: Any) -> tuple[Any, Any]:
    temporal = temporal_operands(left, right)
    if temporal is not None:
        return temporal
    if isinstance(left, (int, float)) and isinstance(right, str):
        return left, float(right)
    if isinstance(left, str) and isinstance(right, (int, float)):
        return float(left), right
    if isinstance(left, (datetime, date)) and isinstance(right, str):
        return left.isoformat(), right
    if isinstance(left, str) and isinstance(right, (datetime, date)):
        return left, right.isoformat()
    return left, right


def _equal(left: Any, right: Any) -> bool:
    temporal = temporal_operands(left, right)
    if temporal is not None:
        return temporal[0] == temporal[1]
    return left == right or str(left) == str(right)


def _matches_condition(row: dict[str, Any], condition: Condition) -> bool:
    value = row.get(condition.column)
    op = condition.op

    if op == FilterOp.IS_NULL:
        return value is None
    if op == FilterOp.IN:
        return value in (condition.value or [])
    if value is None:
        # SQL three-valued logic: comparisons against NULL never match
        return False
    if op == FilterOp.EQ:
        return _equal(value, condition.value)
    if op == FilterOp.NEQ:
        return not _equal(value, condition.value)
    if op == FilterOp.ILIKE:
        return bool(_like_to_regex(str(condition.value)).match(str(value)))

    try:
        left, right = _comparable(value, condition.value)
        if op == FilterOp.GT:
            return left > right
        if op == FilterOp.GTE:
            return left >= right
        if op == FilterOp.LT:
            return left < right
        if op == FilterOp.LTE:
            return left <= right
    except (TypeError, ValueError):
        return False
    return False


def _matches(row: dict[str, Any], predicates: Iterable[Predicate]) -> bool:
    for predicate in predicates:
        if isinstance(predicate, AnyOf):
            if not any(_matches_condition(row, c) for c in predicate.conditions):
                return False
        elif not _matches_condition(row, predicate):
            return False
    return True


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, bool):
        return (0, float(value))
    if isinstance(value, (int, float)):
        return (0, float(value))
    if isinstance(value, (datetime, date)):
        return (1, value.isoformat())
    return (1, str(value))


class InMemoryDataStore(DataStore):
    """
    Dict-backed ``DataStore``.

    Args:
        tables: Initial rows per table name.
        schemas: Optional column names per table. When given, queries against
            a table missing from ``schemas`` or a column missing from its
            schema raise ``StoreError``.
    """

    def __init__(
        self,
        tables: Optional[dict[str, list[dict[str, Any]]]] = None,
        schemas: Optional[dict[str, Iterable[str]]] = None,
    ):
        self._tables: dict[str, list[dict[str, Any]]] = {
            name: [copy.deepcopy(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self._schemas = (
            {name: set(columns) for name, columns in schemas.items()} if schemas is not None else None
        )

    # -- helpers --------------------------------------------------------------

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Snapshot of a table's rows, for inspection."""
        return [copy.deepcopy(row) for row in self._tables.get(table, [])]

    def _check(self, table: str, columns: Iterable[str]) -> None:
        if self._schemas is None:
            return
        if table not in self._schemas:
            raise StoreError(f'relation "{table}" does not exist', table=table)
        unknown = sorted(set(columns) - self._schemas[table])
        if unknown:
            raise StoreError(
                f'column "{unknown[0]}" of relation "{table}" does not exist', table=table
            )

    def _select_rows(self, spec: QuerySpec) -> list[dict[str, Any]]:
        self._check(spec.table, spec.referenced_columns())
        matched = [row for row in self._tables.get(spec.table, []) if _matches(row, spec.predicates)]

        # Apply sort keys from last to first so earlier keys dominate
        for column, descending in reversed(spec.order_by):
            present = [row for row in matched if row.get(column) is not None]
            missing = [row for row in matched if row.get(column) is None]
            present.sort(key=lambda r: _sort_key(r[column]), reverse=descending)
            matched = present + missing

        end = spec.offset + spec.limit if spec.limit is not None else None
        return matched[spec.offset:end]

    @staticmethod
    def _project(row: dict[str, Any], columns: Optional[list[str]]) -> dict[str, Any]:
        if not columns:
            return copy.deepcopy(row)
        return {column: copy.deepcopy(row.get(column)) for column in columns}

    # -- DataStore ------------------------------------------------------------

    async def execute_select(self, spec: QuerySpec) -> list[dict[str, Any]]:
        return [self._project(row, spec.columns) for row in self._select_rows(spec)]

    async def execute_insert(
        self, table: str, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        inserted = []
        for row in rows:
            self._check(table, row.keys())
            stored = copy.deepcopy(row)
            stored.setdefault("id", str(uuid4()))
            if self._schemas is None or "created_at" in self._schemas.get(table, set()):
                stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            self._tables.setdefault(table, []).append(stored)
            inserted.append(copy.deepcopy(stored))
        return inserted

    async def execute_update(
        self, spec: QuerySpec, values: dict[str, Any]
    ) -> list[dict[str, Any]]:
        self._check(spec.table, values.keys())
        updated = []
        for row in self._select_rows(spec):
            row.update(copy.deepcopy(values))
            updated.append(self._project(row, spec.columns))
        return updated

    async def execute_delete(self, spec: QuerySpec) -> list[dict[str, Any]]:
        doomed = self._select_rows(spec)
        doomed_ids = {id(row) for row in doomed}
        self._tables[spec.table] = [
            row for row in self._tables.get(spec.table, []) if id(row) not in doomed_ids
        ]
        return [self._project(row, spec.columns) for row in doomed]
