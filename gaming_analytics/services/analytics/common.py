"""Helpers shared by the analytics calculators."""

import asyncio
from collections.abc import Awaitable, Iterable
from datetime import UTC, date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

GroupBy = Literal["day", "week", "month"]

GROUP_BY_VALUES: tuple[str, ...] = ("day", "week", "month")

ONE_DAY = timedelta(days=1)
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps read back from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_between(now: datetime, then: datetime) -> int:
    """Whole days elapsed from ``then`` to ``now`` (floored)."""
    return (ensure_utc(now) - ensure_utc(then)) // ONE_DAY


def money(value: Decimal | int | float) -> float:
    """Round a monetary amount to cents for the result record."""
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def percent(numerator: Decimal | int, denominator: Decimal | int) -> float:
    """``numerator / denominator * 100`` to 2 places; 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return money(Decimal(numerator) / Decimal(denominator) * HUNDRED)


def as_rate(value: Decimal | float | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def as_date(value: Any) -> date:
    """Normalize a ``date()`` aggregate (date object or ISO string) to ``date``."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def validate_group_by(group_by: str | None, *, optional: bool = False) -> str | None:
    if group_by is None and optional:
        return None
    if group_by not in GROUP_BY_VALUES:
        raise ValueError(f"group_by must be one of {', '.join(GROUP_BY_VALUES)}")
    return group_by


def bucket_key(day: date, group_by: str) -> str:
    """Bucket label for a calendar day: ``2026-10-19``, ``2026-W43`` or ``2026-10``.

    Weeks use the ISO year so the last days of December can land in week 1.
    """
    if group_by == "day":
        return day.isoformat()
    if group_by == "week":
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return f"{day.year:04d}-{day.month:02d}"


def sum_decimals(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal("0"))


async def gather_all(*aws: Awaitable[Any]) -> tuple[Any, ...]:
    """Run store reads concurrently and return their results in order.

    The first failure cancels the sibling branches, waits for them to
    finish, and is re-raised as-is so callers can still tell a ValueError
    from a database error.
    """

    async def run(aw: Awaitable[Any]) -> Any:
        return await aw

    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(run(aw)) for aw in aws]
    except BaseExceptionGroup as group:
        raise group.exceptions[0] from None
    return tuple(task.result() for task in tasks)
