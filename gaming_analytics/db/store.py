"""Record store adapter.

A thin query surface over the bet, transaction, user and tenant tables. Every
primitive opens its own short-lived session, so callers may run any number of
them concurrently with ``gather_all``. Nothing here retries: a store error
propagates to the caller unchanged.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, Row, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.compiler import SQLCompiler
from sqlalchemy.sql.functions import FunctionElement
from sqlalchemy.orm import InstrumentedAttribute

from gaming_analytics.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)

Criteria = Sequence[ColumnElement[bool]]


@dataclass(frozen=True)
class Window:
    """Inclusive time window. A missing bound means unbounded on that side."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise ValueError("Window start must not be after its end")

    @property
    def bounded(self) -> bool:
        return self.start is not None and self.end is not None


def within(column: InstrumentedAttribute[Any], window: Window | None) -> list[ColumnElement[bool]]:
    """Criteria restricting ``column`` to ``window`` (both ends inclusive)."""
    if window is None:
        return []
    criteria = []
    if window.start is not None:
        criteria.append(column >= window.start)
    if window.end is not None:
        criteria.append(column <= window.end)
    return criteria


def for_tenant(column: InstrumentedAttribute[Any], tenant_id: int | None) -> list[ColumnElement[bool]]:
    """Criteria scoping ``column`` to one tenant; empty means platform-wide."""
    if tenant_id is None:
        return []
    return [column == tenant_id]


class utc_date(FunctionElement[Any]):
    """UTC calendar day of a timestamp, independent of the session time zone."""

    name = "utc_date"
    inherit_cache = True


@compiles(utc_date)
def _utc_date_default(element: utc_date, compiler: SQLCompiler, **kw: Any) -> str:
    # SQLite stores naive UTC strings
    return f"date({compiler.process(element.clauses, **kw)})"


@compiles(utc_date, "postgresql")
def _utc_date_postgresql(element: utc_date, compiler: SQLCompiler, **kw: Any) -> str:
    # date() on a timestamptz would use the session TimeZone
    return f"date(timezone('UTC', {compiler.process(element.clauses, **kw)}))"


def day_of(column: InstrumentedAttribute[Any]) -> Any:
    """Calendar day (UTC) of a timestamp column.

    PostgreSQL returns a ``date``, SQLite an ISO string; see ``common.as_date``.
    """
    return utc_date(column)


def to_decimal(value: Any) -> Decimal:
    """Normalize an aggregate result to Decimal (NULL sums become zero)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class RecordStore:
    """Aggregate queries over the betting records.

    Example:
        store = RecordStore(AsyncSessionLocal)
        stakes = await store.total(Bet.stake, Bet.tenant_id == 7)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def aggregate(
        self,
        *columns: Any,
        where: Criteria = (),
        group_by: Sequence[Any] = (),
        order_by: Sequence[Any] = (),
    ) -> list[Row[Any]]:
        """Run ``SELECT columns WHERE ... GROUP BY ...`` and return all rows."""
        stmt = select(*columns)
        if where:
            stmt = stmt.where(*where)
        if group_by:
            stmt = stmt.group_by(*group_by)
        if order_by:
            stmt = stmt.order_by(*order_by)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.all())

    async def aggregate_one(self, *columns: Any, where: Criteria = ()) -> Row[Any]:
        """Ungrouped aggregate that always yields exactly one row."""
        rows = await self.aggregate(*columns, where=where)
        return rows[0]

    async def total(self, column: InstrumentedAttribute[Any], *where: ColumnElement[bool]) -> Decimal:
        """Sum of ``column`` over matching rows (zero when none match)."""
        row = await self.aggregate_one(func.sum(column), where=where)
        return to_decimal(row[0])

    async def sum_and_count(
        self, column: InstrumentedAttribute[Any], *where: ColumnElement[bool]
    ) -> tuple[Decimal, int]:
        """Sum of ``column`` and number of matching rows."""
        row = await self.aggregate_one(func.sum(column), func.count(), where=where)
        return to_decimal(row[0]), int(row[1] or 0)

    async def count(self, column: InstrumentedAttribute[Any], *where: ColumnElement[bool]) -> int:
        """Number of matching rows."""
        row = await self.aggregate_one(func.count(column), where=where)
        return int(row[0] or 0)

    async def distinct(self, column: InstrumentedAttribute[Any], *where: ColumnElement[bool]) -> set[Any]:
        """Set of distinct values of ``column`` over matching rows."""
        rows = await self.aggregate(column, where=[*where, column.is_not(None)], group_by=[column])
        return {row[0] for row in rows}

    async def latest_by(
        self,
        key: InstrumentedAttribute[Any],
        timestamp: InstrumentedAttribute[Any],
        *where: ColumnElement[bool],
    ) -> dict[Any, datetime]:
        """Most recent ``timestamp`` per ``key``."""
        rows = await self.aggregate(key, func.max(timestamp), where=where, group_by=[key])
        return {row[0]: row[1] for row in rows}

    async def earliest_by(
        self,
        key: InstrumentedAttribute[Any],
        timestamp: InstrumentedAttribute[Any],
        *where: ColumnElement[bool],
    ) -> dict[Any, datetime]:
        """Earliest ``timestamp`` per ``key``."""
        rows = await self.aggregate(key, func.min(timestamp), where=where, group_by=[key])
        return {row[0]: row[1] for row in rows}

    async def entities(
        self,
        model: type[ModelType],
        *where: ColumnElement[bool],
        order_by: Sequence[Any] = (),
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ModelType]:
        """Load ORM entities of ``model`` matching ``where``."""
        stmt = select(model)
        if where:
            stmt = stmt.where(*where)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def insert(self, entity: ModelType) -> ModelType:
        """Insert one entity in its own transaction and return it."""
        async with self._session_factory() as session, session.begin():
            session.add(entity)
        return entity
