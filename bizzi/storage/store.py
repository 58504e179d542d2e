"""Generic queryable-collection handle handed to intent recipes.

Recipes issue bounded, filtered, sorted reads keyed by business/user id and
never touch the session machinery directly.  ``SqlStore`` implements the
protocol with SQLAlchemy Core on top of the ORM tables in
``bizzi.storage.models``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from sqlalchemy import Column, MetaData, Table, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine

from bizzi.storage.models import Base


class StoreError(RuntimeError):
    """Raised for unknown tables/columns or a failed statement."""


class DataStore(Protocol):
    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        eq: Mapping[str, Any] | None = None,
        gte: Mapping[str, Any] | None = None,
        lte: Mapping[str, Any] | None = None,
        ilike: Mapping[str, str] | None = None,
        ilike_any: Mapping[str, str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]: ...


class SqlStore:
    """``DataStore`` over an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine, metadata: MetaData | None = None) -> None:
        self._engine = engine
        self._metadata = metadata or Base.metadata

    def _table(self, name: str) -> Table:
        table = self._metadata.tables.get(name)
        if table is None:
            raise StoreError(f"unknown table: {name}")
        return table

    @staticmethod
    def _column(table: Table, name: str) -> Column:
        try:
            return table.c[name]
        except KeyError as exc:
            raise StoreError(f"unknown column {table.name}.{name}") from exc

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        eq: Mapping[str, Any] | None = None,
        gte: Mapping[str, Any] | None = None,
        lte: Mapping[str, Any] | None = None,
        ilike: Mapping[str, str] | None = None,
        ilike_any: Mapping[str, str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        t = self._table(table)
        if columns:
            stmt = select(*(self._column(t, c) for c in columns))
        else:
            stmt = select(t)

        for name, value in (eq or {}).items():
            col = self._column(t, name)
            stmt = stmt.where(col.is_(None) if value is None else col == value)
        for name, value in (gte or {}).items():
            stmt = stmt.where(self._column(t, name) >= value)
        for name, value in (lte or {}).items():
            stmt = stmt.where(self._column(t, name) <= value)
        for name, pattern in (ilike or {}).items():
            stmt = stmt.where(self._column(t, name).ilike(pattern))
        if ilike_any:
            stmt = stmt.where(or_(*(self._column(t, n).ilike(p) for n, p in ilike_any.items())))

        if order_by:
            col = self._column(t, order_by)
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row._mapping) for row in result]

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        t = self._table(table)
        values = dict(row)
        for name in values:
            self._column(t, name)
        async with self._engine.begin() as conn:
            result = await conn.execute(insert(t).values(**values).returning(*t.c))
            return dict(result.mappings().one())
