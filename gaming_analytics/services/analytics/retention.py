"""Registration-month cohort retention."""

from datetime import UTC, date, datetime, timedelta
from typing import Any

from dateutil.relativedelta import relativedelta
from sqlalchemy import select

from gaming_analytics.db.store import RecordStore, for_tenant
from gaming_analytics.models import Bet, User, UserRole
from gaming_analytics.services.analytics.common import ensure_utc, gather_all, percent, utcnow

RETENTION_WINDOW = timedelta(days=30)


def cohort_start(cohort_month: date | datetime | str | None, now: datetime) -> datetime:
    """First instant (UTC) of the cohort month.

    Accepts a date, a datetime or a ``YYYY-MM`` string. Defaults to the
    calendar month before ``now``.
    """
    if cohort_month is None:
        month = ensure_utc(now).date().replace(day=1) - relativedelta(months=1)
    elif isinstance(cohort_month, datetime):
        month = ensure_utc(cohort_month).date()
    elif isinstance(cohort_month, date):
        month = cohort_month
    else:
        try:
            month = datetime.strptime(cohort_month, "%Y-%m").date()
        except (TypeError, ValueError) as e:
            raise ValueError(f"cohort_month must look like YYYY-MM, got {cohort_month!r}") from e

    return datetime(month.year, month.month, 1, tzinfo=UTC)


async def calculate_retention(
    store: RecordStore,
    tenant_id: int | None = None,
    cohort_month: date | datetime | str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Share of a registration cohort that placed a bet in the last 30 days."""
    now = now or utcnow()
    start = cohort_start(cohort_month, now)
    end = start + relativedelta(months=1)

    cohort = [
        User.role == UserRole.PLAYER.value,
        User.created_at >= start,
        User.created_at < end,
        *for_tenant(User.tenant_id, tenant_id),
    ]

    cohort_size, retained = await gather_all(
        store.count(User.id, *cohort),
        store.distinct(
            Bet.user_id,
            Bet.user_id.in_(select(User.id).where(*cohort)),
            Bet.created_at >= now - RETENTION_WINDOW,
        ),
    )

    return {
        "cohort_size": cohort_size,
        "retained": len(retained),
        "retention_rate": percent(len(retained), cohort_size),
        "cohort_period": start.strftime("%Y-%m"),
    }
