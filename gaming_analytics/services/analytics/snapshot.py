"""Snapshot generation: one write-once rollup of every calculator for a period."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog
from dateutil.relativedelta import relativedelta

from gaming_analytics.core.audit import audit_snapshot_failed, audit_snapshot_generated
from gaming_analytics.db.store import RecordStore, Window, for_tenant
from gaming_analytics.models import AnalyticsSnapshot, SnapshotSource, SnapshotStatus, SnapshotType
from gaming_analytics.services.analytics.agents import get_agent_profits
from gaming_analytics.services.analytics.churn import detect_churn
from gaming_analytics.services.analytics.common import ensure_utc, gather_all, money, percent, sum_decimals, utcnow
from gaming_analytics.services.analytics.players import get_player_metrics
from gaming_analytics.services.analytics.retention import calculate_retention
from gaming_analytics.services.analytics.revenue import calculate_ngr
from gaming_analytics.services.analytics.trends import get_financial_trends

logger = structlog.get_logger()

SNAPSHOT_TYPES = tuple(t.value for t in SnapshotType)
SNAPSHOT_SOURCES = tuple(s.value for s in SnapshotSource)

# Agents kept in the snapshot's performance table
TOP_AGENTS = 10


def resolve_period(snapshot_type: str, window: Window | None, now: datetime) -> tuple[datetime, datetime]:
    """Period covered by a snapshot.

    An explicit window with both bounds wins. Otherwise the period ends at
    ``now`` and starts at midnight UTC (daily), 7 days back (weekly),
    one calendar month back (monthly) or one day back (anything else).

    Raises:
        ValueError: The window has only one of its two bounds
    """
    if window is not None and (window.start is None) != (window.end is None):
        raise ValueError("start_date and end_date must be given together")
    if window is not None and window.bounded:
        return ensure_utc(window.start), ensure_utc(window.end)

    now = ensure_utc(now)
    if snapshot_type == SnapshotType.DAILY.value:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif snapshot_type == SnapshotType.WEEKLY.value:
        start = now - timedelta(days=7)
    elif snapshot_type == SnapshotType.MONTHLY.value:
        start = now - relativedelta(months=1)
    else:
        start = now - timedelta(days=1)
    return start, now


def _money_total(rows: list[dict[str, Any]], field: str) -> Decimal:
    return sum_decimals(Decimal(str(row[field])) for row in rows)


async def generate_snapshot(
    store: RecordStore,
    snapshot_type: str = SnapshotType.DAILY.value,
    tenant_id: int | None = None,
    window: Window | None = None,
    generated_by: str = SnapshotSource.SYSTEM.value,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Compute every section for the period and persist one AnalyticsSnapshot.

    All calculators run concurrently and the first failure aborts the run
    before anything is written, so a stored snapshot is always complete.
    Re-running for the same period inserts a new row.

    Raises:
        ValueError: Unknown ``snapshot_type`` or ``generated_by``
    """
    if snapshot_type not in SNAPSHOT_TYPES:
        raise ValueError(f"snapshot_type must be one of {', '.join(SNAPSHOT_TYPES)}")
    if generated_by not in SNAPSHOT_SOURCES:
        raise ValueError(f"generated_by must be one of {', '.join(SNAPSHOT_SOURCES)}")

    now = now or utcnow()
    period_start, period_end = resolve_period(snapshot_type, window, now)
    period = Window(period_start, period_end)

    log = logger.bind(snapshot_type=snapshot_type, tenant_id=tenant_id, generated_by=generated_by)
    log.info("snapshot_generation_started", period_start=period_start.isoformat(), period_end=period_end.isoformat())

    try:
        ngr, player_metrics, agent_profits, financial_trends, churn, retention = await gather_all(
            calculate_ngr(store, period, tenant_id),
            get_player_metrics(store, period, tenant_id, now=now),
            get_agent_profits(store, period, tenant_id),
            get_financial_trends(store, period, tenant_id),
            detect_churn(store, tenant_id, now=now),
            calculate_retention(store, tenant_id, now=now),
        )
    except Exception as e:
        log.exception("snapshot_generation_failed")
        audit_snapshot_failed(snapshot_type, tenant_id, generated_by, f"{type(e).__name__}: {e}")
        raise

    total_deposits = _money_total(financial_trends, "deposits")
    total_withdrawals = _money_total(financial_trends, "withdrawals")

    snapshot = AnalyticsSnapshot(
        type=snapshot_type,
        period_start=period_start,
        period_end=period_end,
        tenant_id=tenant_id,
        revenue={
            "ggr": ngr["ggr"],
            "ngr": ngr["ngr"],
            "turnover": ngr["total_stakes"],
            "total_stakes": ngr["total_stakes"],
            "total_payouts": ngr["total_payouts"],
            "total_bonuses_paid": ngr["bonuses_paid"],
            "house_edge": ngr["house_edge"],
            # Every bet is sportsbook until bets carry a product type
            "sportsbook_ggr": ngr["ggr"],
        },
        betting={
            "total_bets": ngr["total_bets"],
            "won_bets": ngr["won_bets"],
            "win_rate": percent(ngr["won_bets"], ngr["total_bets"]),
        },
        players={
            **player_metrics,
            "retention_rate": retention["retention_rate"],
            "churn_rate": churn["churn_rate"],
            "churned_players": len(churn["churned_players"]),
        },
        financial={
            "total_deposits": money(total_deposits),
            "total_withdrawals": money(total_withdrawals),
            "net_deposits": money(total_deposits - total_withdrawals),
        },
        agents={
            "total_agents": len(agent_profits),
            "active_agents": sum(1 for agent in agent_profits if agent["turnover"] > 0),
            "total_commission_paid": money(_money_total(agent_profits, "commission")),
            "agent_performance": agent_profits[:TOP_AGENTS],
        },
        status=SnapshotStatus.COMPLETED.value,
        generated_by=generated_by,
        generated_at=utcnow(),
    )

    await store.insert(snapshot)
    result = snapshot.to_dict()

    log.info("snapshot_generated", snapshot_id=result["id"], ggr=ngr["ggr"], ngr=ngr["ngr"])
    audit_snapshot_generated(
        snapshot_id=result["id"],
        snapshot_type=snapshot_type,
        tenant_id=tenant_id,
        generated_by=generated_by,
        period_start=result["period_start"],
        period_end=result["period_end"],
    )
    return result


async def has_snapshot(
    store: RecordStore, snapshot_type: str, period_start: datetime, tenant_id: int | None = None
) -> bool:
    """Whether a snapshot already exists for (type, period start, tenant)."""
    same_tenant = (
        AnalyticsSnapshot.tenant_id.is_(None) if tenant_id is None else AnalyticsSnapshot.tenant_id == tenant_id
    )
    count = await store.count(
        AnalyticsSnapshot.id,
        AnalyticsSnapshot.type == snapshot_type,
        AnalyticsSnapshot.period_start == period_start,
        same_tenant,
    )
    return count > 0


async def list_snapshots(
    store: RecordStore, tenant_id: int | None = None, limit: int = 30
) -> list[dict[str, Any]]:
    """Most recent snapshots by period start, newest first."""
    snapshots = await store.entities(
        AnalyticsSnapshot,
        *for_tenant(AnalyticsSnapshot.tenant_id, tenant_id),
        order_by=[AnalyticsSnapshot.period_start.desc(), AnalyticsSnapshot.created_at.desc()],
        limit=limit,
    )
    return [snapshot.to_dict() for snapshot in snapshots]
