"""
SQLAlchemy Row Store.

Implements ``DataStore`` on the async engine by reflecting the externally
owned tables on first use. Builder predicates compile to SQLAlchemy Core
expressions, so every query is parameterized.
Source: https://docs.sqlalchemy.org/en/20/core/reflection.html
"""

import asyncio
import logging
from typing import Any

from sqlalchemy import MetaData, Table, and_, delete, insert, or_, select, update
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.elements import ColumnElement

from src.db.store import AnyOf, Condition, DataStore, FilterOp, QuerySpec, StoreError

logger = logging.getLogger(__name__)


class SQLAlchemyDataStore(DataStore):
    """``DataStore`` backed by reflected tables on an ``AsyncEngine``."""

    def __init__(self, engine: AsyncEngine, schema: str | None = None):
        self._engine = engine
        self._metadata = MetaData(schema=schema)
        self._tables: dict[str, Table] = {}
        self._lock = asyncio.Lock()

    async def _table(self, name: str) -> Table:
        if name in self._tables:
            return self._tables[name]
        async with self._lock:
            if name not in self._tables:
                try:
                    async with self._engine.connect() as conn:
                        table = await conn.run_sync(
                            lambda sync_conn: Table(name, self._metadata, autoload_with=sync_conn)
                        )
                except NoSuchTableError as e:
                    raise StoreError(f'relation "{name}" does not exist', table=name, original_error=e) from e
                except SQLAlchemyError as e:
                    raise StoreError(str(e), table=name, original_error=e) from e
                self._tables[name] = table
                logger.debug(f"Reflected table {name} ({len(table.columns)} columns)")
        return self._tables[name]

    @staticmethod
    def _column(table: Table, name: str) -> Any:
        try:
            return table.c[name]
        except KeyError as e:
            raise StoreError(
                f'column "{name}" of relation "{table.name}" does not exist', table=table.name
            ) from e

    def _condition(self, table: Table, condition: Condition) -> ColumnElement[bool]:
        column = self._column(table, condition.column)
        op = condition.op
        if op == FilterOp.EQ:
            return column == condition.value
        if op == FilterOp.NEQ:
            return column != condition.value
        if op == FilterOp.GT:
            return column > condition.value
        if op == FilterOp.GTE:
            return column >= condition.value
        if op == FilterOp.LT:
            return column < condition.value
        if op == FilterOp.LTE:
            return column <= condition.value
        if op == FilterOp.IN:
            return column.in_(list(condition.value or []))
        if op == FilterOp.ILIKE:
            return column.ilike(condition.value)
        if op == FilterOp.IS_NULL:
            return column.is_(None)
        raise StoreError(f"Unsupported filter operator: {op}", table=table.name)

    def _where(self, table: Table, spec: QuerySpec) -> list[ColumnElement[bool]]:
        clauses = []
        for predicate in spec.predicates:
            if isinstance(predicate, AnyOf):
                clauses.append(or_(*(self._condition(table, c) for c in predicate.conditions)))
            else:
                clauses.append(self._condition(table, predicate))
        return clauses

    def _returning(self, table: Table, spec: QuerySpec) -> list[Any]:
        if spec.columns:
            return [self._column(table, name) for name in spec.columns]
        return list(table.columns)

    async def _run(self, table_name: str, statement: Any, write: bool) -> list[dict[str, Any]]:
        try:
            if write:
                async with self._engine.begin() as conn:
                    result = await conn.execute(statement)
                    return [dict(row._mapping) for row in result]
            async with self._engine.connect() as conn:
                result = await conn.execute(statement)
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            logger.error(f"Query on {table_name} failed: {e}")
            raise StoreError(str(e), table=table_name, original_error=e) from e

    # -- DataStore ------------------------------------------------------------

    async def execute_select(self, spec: QuerySpec) -> list[dict[str, Any]]:
        table = await self._table(spec.table)
        statement = select(*self._returning(table, spec))
        where = self._where(table, spec)
        if where:
            statement = statement.where(and_(*where))
        for column, descending in spec.order_by:
            col = self._column(table, column)
            statement = statement.order_by(col.desc().nulls_last() if descending else col.asc().nulls_last())
        if spec.offset:
            statement = statement.offset(spec.offset)
        if spec.limit is not None:
            statement = statement.limit(spec.limit)
        return await self._run(spec.table, statement, write=False)

    async def execute_insert(
        self, table: str, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        reflected = await self._table(table)
        for row in rows:
            for name in row:
                self._column(reflected, name)
        statement = insert(reflected).values(rows).returning(*reflected.columns)
        return await self._run(table, statement, write=True)

    async def execute_update(
        self, spec: QuerySpec, values: dict[str, Any]
    ) -> list[dict[str, Any]]:
        table = await self._table(spec.table)
        for name in values:
            self._column(table, name)
        statement = update(table).values(**values)
        where = self._where(table, spec)
        if where:
            statement = statement.where(and_(*where))
        statement = statement.returning(*self._returning(table, spec))
        return await self._run(spec.table, statement, write=True)

    async def execute_delete(self, spec: QuerySpec) -> list[dict[str, Any]]:
        table = await self._table(spec.table)
        statement = delete(table)
        where = self._where(table, spec)
        if where:
            statement = statement.where(and_(*where))
        statement = statement.returning(*self._returning(table, spec))
        return await self._run(spec.table, statement, write=True)

    async def close(self) -> None:
        await self._engine.dispose()
