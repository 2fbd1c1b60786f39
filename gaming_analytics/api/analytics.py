"""Analytics reporting API endpoints."""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from gaming_analytics.core.audit import AuditAction, audit_player_data_access
from gaming_analytics.core.cache import cached_report
from gaming_analytics.core.config import settings
from gaming_analytics.db.session import get_store
from gaming_analytics.db.store import RecordStore, Window
from gaming_analytics.middleware.request_tracing import client_ip
from gaming_analytics.models import SnapshotSource, SnapshotType, User, UserRole
from gaming_analytics.services.analytics import (
    calculate_ggr,
    calculate_ngr,
    calculate_player_ltv,
    calculate_retention,
    detect_churn,
    detect_churn_patterns,
    generate_snapshot,
    get_agent_profits,
    get_financial_trends,
    get_ggr_by_tenant,
    get_ggr_trend_by_tenant,
    get_player_list,
    get_player_metrics,
    get_product_split,
    get_turnover,
    list_snapshots,
    summarize_tenants,
)
from gaming_analytics.services.analytics.common import ensure_utc, gather_all

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/analytics", tags=["analytics"])
logger = structlog.get_logger()

REPORT_UNAVAILABLE = "This report is temporarily unavailable"


def report_window(
    start_date: datetime | None = Query(None, description="Window start, inclusive (ISO 8601, UTC if naive)"),
    end_date: datetime | None = Query(None, description="Window end, inclusive (ISO 8601, UTC if naive)"),
) -> Window | None:
    """Build the report window from the query string; no dates means all time."""
    if start_date is None and end_date is None:
        return None
    try:
        return Window(
            ensure_utc(start_date) if start_date else None,
            ensure_utc(end_date) if end_date else None,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


Store = Annotated[RecordStore, Depends(get_store)]
ReportWindow = Annotated[Window | None, Depends(report_window)]
TenantFilter = Annotated[int | None, Query(ge=1, description="Tenant filter; omit for platform-wide")]


async def _run_report(
    report: str,
    compute: Callable[[], Awaitable[Any]],
    cache: bool = True,
    **params: Any,
) -> Any:
    """Run a report, mapping engine errors to HTTP errors.

    Invalid input becomes 400; store failures become 503 and are logged.
    """
    try:
        if cache:
            return await cached_report(report, compute, **params)
        return await compute()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except SQLAlchemyError as e:
        logger.exception("report_failed", report=report, error_type=type(e).__name__)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=REPORT_UNAVAILABLE) from e


class GGRResponse(BaseModel):
    """Gross gaming revenue for a window."""

    ggr: float
    total_stakes: float
    total_payouts: float
    total_bets: int
    won_bets: int
    house_edge: float


class NGRResponse(GGRResponse):
    """GGR with the net revenue waterfall."""

    provider_fees: float
    provider_fee_rate: float
    gateway_fees: float
    gateway_fee_rate: float
    gateway_volume: float
    transaction_count: int
    bonuses_paid: float
    bonus_count: int
    taxes: float
    tax_rate: float
    operational_costs: float
    ngr: float
    true_net_profit: float
    profit_margin: float


class TurnoverPoint(BaseModel):
    """Stake totals for one bucket."""

    period: str | None
    turnover: float
    bet_count: int
    avg_stake: float
    avg_odds: float


class FinancialTrendPoint(BaseModel):
    """Completed deposits and withdrawals for one bucket."""

    date: str
    deposits: float
    deposit_count: int
    withdrawals: float
    withdrawal_count: int


class PlayerMetricsResponse(BaseModel):
    """Player counts."""

    total_registered: int
    active_players: int
    new_registrations: int
    daily_active_users: int
    weekly_active_users: int
    monthly_active_users: int
    depositing_players: int
    first_time_depositors: int


class RetentionResponse(BaseModel):
    """Cohort retention."""

    cohort_size: int
    retained: int
    retention_rate: float
    cohort_period: str


class ChurnSummary(BaseModel):
    """Churn counts for the players report."""

    churn_rate: float
    churned_count: int
    at_risk_count: int
    healthy_count: int


class PlayersReportResponse(PlayerMetricsResponse):
    """Player counts with churn and retention summaries."""

    churn: ChurnSummary
    retention: RetentionResponse


class SnapshotResponse(BaseModel):
    """Persisted analytics snapshot."""

    id: str
    type: str
    period_start: str
    period_end: str
    tenant_id: int | None
    revenue: dict[str, Any]
    betting: dict[str, Any]
    players: dict[str, Any]
    financial: dict[str, Any]
    agents: dict[str, Any]
    status: str
    generated_by: str
    generated_at: str


class SnapshotCreateRequest(BaseModel):
    """Request to generate a snapshot now."""

    type: str = Field(default=SnapshotType.DAILY.value, description="daily, weekly, monthly or custom")
    tenant_id: int | None = Field(default=None, ge=1)
    start_date: datetime | None = None
    end_date: datetime | None = None


@router.get("/overview")
async def get_overview(
    store: Store,
    window: ReportWindow,
    tenant_id: TenantFilter = None,
) -> dict[str, Any]:
    """Headline revenue figures, player counts, product split and daily turnover."""

    async def compute() -> dict[str, Any]:
        ngr, players, product_split, turnover_trend = await gather_all(
            calculate_ngr(store, window, tenant_id),
            get_player_metrics(store, window, tenant_id),
            get_product_split(store, window, tenant_id),
            get_turnover(store, window, tenant_id, group_by="day"),
        )
        return {
            "ggr": ngr["ggr"],
            "ngr": ngr["ngr"],
            "total_stakes": ngr["total_stakes"],
            "total_payouts": ngr["total_payouts"],
            "total_bets": ngr["total_bets"],
            "house_edge": ngr["house_edge"],
            "bonuses_paid": ngr["bonuses_paid"],
            "players": players,
            "product_split": product_split,
            "turnover_trend": turnover_trend,
        }

    result: dict[str, Any] = await _run_report("overview", compute, window=window, tenant_id=tenant_id)
    return result


@router.get("/ggr", response_model=GGRResponse)
async def get_ggr(store: Store, window: ReportWindow, tenant_id: TenantFilter = None) -> Any:
    """Gross gaming revenue: stakes minus winnings paid."""
    return await _run_report(
        "ggr", lambda: calculate_ggr(store, window, tenant_id), window=window, tenant_id=tenant_id
    )


@router.get("/ngr", response_model=NGRResponse)
async def get_ngr(
    store: Store,
    window: ReportWindow,
    tenant_id: TenantFilter = None,
    provider_fee_rate: float | None = Query(None, ge=0, le=1),
    gateway_fee_rate: float | None = Query(None, ge=0, le=1),
    tax_rate: float | None = Query(None, ge=0, le=1),
) -> Any:
    """Net gaming revenue waterfall. Rates are fractions; omitted rates use the configured defaults."""
    return await _run_report(
        "ngr",
        lambda: calculate_ngr(
            store,
            window,
            tenant_id,
            provider_fee_rate=provider_fee_rate,
            gateway_fee_rate=gateway_fee_rate,
            tax_rate=tax_rate,
        ),
        window=window,
        tenant_id=tenant_id,
        provider_fee_rate=provider_fee_rate,
        gateway_fee_rate=gateway_fee_rate,
        tax_rate=tax_rate,
    )


@router.get("/turnover", response_model=list[TurnoverPoint])
async def get_turnover_report(
    store: Store,
    window: ReportWindow,
    tenant_id: TenantFilter = None,
    group_by: str | None = Query(None, description="day, week or month; omit for one total row"),
) -> Any:
    """Turnover, bet count and averages per bucket."""
    return await _run_report(
        "turnover",
        lambda: get_turnover(store, window, tenant_id, group_by),
        window=window,
        tenant_id=tenant_id,
        group_by=group_by,
    )


@router.get("/product-split")
async def get_product_split_report(
    store: Store, window: ReportWindow, tenant_id: TenantFilter = None
) -> dict[str, Any]:
    """GGR and turnover by product line."""
    result: dict[str, Any] = await _run_report(
        "product_split",
        lambda: get_product_split(store, window, tenant_id),
        window=window,
        tenant_id=tenant_id,
    )
    return result


@router.get("/agents")
async def get_agents_report(
    store: Store,
    window: ReportWindow,
    tenant_id: TenantFilter = None,
    limit: int | None = Query(None, ge=1, le=100),
) -> dict[str, Any]:
    """Top agents by profit."""
    agents = await _run_report(
        "agents",
        lambda: get_agent_profits(store, window, tenant_id, limit),
        window=window,
        tenant_id=tenant_id,
        limit=limit,
    )
    return {"agents": agents}


@router.get("/players", response_model=PlayersReportResponse)
async def get_players_report(
    store: Store,
    window: ReportWindow,
    tenant_id: TenantFilter = None,
) -> Any:
    """Player counts with churn and retention summaries."""

    async def compute() -> dict[str, Any]:
        metrics, churn, retention = await gather_all(
            get_player_metrics(store, window, tenant_id),
            detect_churn(store, tenant_id),
            calculate_retention(store, tenant_id),
        )
        return {
            **metrics,
            "churn": {
                "churn_rate": churn["churn_rate"],
                "churned_count": len(churn["churned_players"]),
                "at_risk_count": churn["at_risk_count"],
                "healthy_count": churn["healthy_count"],
            },
            "retention": retention,
        }

    return await _run_report("players", compute, window=window, tenant_id=tenant_id)


@router.get("/players/list")
async def get_players_list_report(
    request: Request,
    store: Store,
    window: ReportWindow,
    tenant_id: TenantFilter = None,
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
) -> dict[str, Any]:
    """Newest-first page of players with their betting and wallet totals."""
    result: dict[str, Any] = await _run_report(
        "players_list",
        lambda: get_player_list(store, window, tenant_id, limit=limit, skip=skip),
        window=window,
        tenant_id=tenant_id,
        limit=limit,
        skip=skip,
    )
    audit_player_data_access(
        AuditAction.PLAYER_LIST_VIEW,
        tenant_id=tenant_id,
        record_count=len(result["players"]),
        ip_address=client_ip(request),
        details={"limit": limit, "skip": skip},
    )
    return result


@router.get("/players/{user_id}/ltv")
async def get_player_ltv_report(request: Request, user_id: int, store: Store) -> dict[str, Any]:
    """Lifetime value, segment and betting profile of one player."""

    async def compute() -> dict[str, Any] | None:
        exists = await store.count(User.id, User.id == user_id, User.role == UserRole.PLAYER.value)
        if not exists:
            return None
        return await calculate_player_ltv(store, user_id)

    result = await _run_report("player_ltv", compute, cache=False, user_id=user_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Player not found")

    audit_player_data_access(
        AuditAction.PLAYER_LTV_VIEW, tenant_id=None, record_count=1, ip_address=client_ip(request)
    )
    ltv: dict[str, Any] = result
    return ltv


@router.get("/churn")
async def get_churn_report(
    request: Request,
    store: Store,
    tenant_id: TenantFilter = None,
    inactive_days: int | None = Query(None, ge=1, le=365),
) -> dict[str, Any]:
    """Churned and at-risk players by days since last activity."""
    result: dict[str, Any] = await _run_report(
        "churn",
        lambda: detect_churn(store, tenant_id, inactive_days),
        tenant_id=tenant_id,
        inactive_days=inactive_days,
    )
    audit_player_data_access(
        AuditAction.CHURN_LIST_VIEW,
        tenant_id=tenant_id,
        record_count=len(result["churned_players"]) + len(result["at_risk_players"]),
        ip_address=client_ip(request),
    )
    return result


@router.get("/churn/patterns")
async def get_churn_patterns_report(
    request: Request,
    store: Store,
    tenant_id: TenantFilter = None,
    inactive_days: int | None = Query(None, ge=1, le=14),
) -> dict[str, Any]:
    """Regular players who recently went quiet, with suggested retention actions."""
    result: dict[str, Any] = await _run_report(
        "churn_patterns",
        lambda: detect_churn_patterns(store, tenant_id, inactive_days),
        tenant_id=tenant_id,
        inactive_days=inactive_days,
    )
    audit_player_data_access(
        AuditAction.CHURN_LIST_VIEW,
        tenant_id=tenant_id,
        record_count=len(result["churned_players"]) + len(result["at_risk_players"]),
        ip_address=client_ip(request),
    )
    return result


@router.get("/retention", response_model=RetentionResponse)
async def get_retention_report(
    store: Store,
    tenant_id: TenantFilter = None,
    cohort_month: str | None = Query(None, description="Registration month, YYYY-MM; default is last month"),
) -> Any:
    """30-day retention of a registration-month cohort."""
    return await _run_report(
        "retention",
        lambda: calculate_retention(store, tenant_id, cohort_month),
        tenant_id=tenant_id,
        cohort_month=cohort_month,
    )


@router.get("/financial-trends", response_model=list[FinancialTrendPoint])
async def get_financial_trends_report(
    store: Store,
    window: ReportWindow,
    tenant_id: TenantFilter = None,
    group_by: str = Query("day", description="day, week or month"),
) -> Any:
    """Completed deposits and withdrawals per bucket."""
    return await _run_report(
        "financial_trends",
        lambda: get_financial_trends(store, window, tenant_id, group_by),
        window=window,
        tenant_id=tenant_id,
        group_by=group_by,
    )


@router.get("/tenants")
async def get_tenants_report(
    store: Store,
    window: ReportWindow,
    group_by: str = Query("day", description="Trend bucket: day, week or month"),
) -> dict[str, Any]:
    """Per-tenant revenue and revenue share, a per-tenant GGR trend, and platform totals."""

    async def compute() -> dict[str, Any]:
        tenants, trend = await gather_all(
            get_ggr_by_tenant(store, window),
            get_ggr_trend_by_tenant(store, window, group_by),
        )
        return {"tenants": tenants, "trend": trend, "totals": summarize_tenants(tenants)}

    result: dict[str, Any] = await _run_report("tenants", compute, window=window, group_by=group_by)
    return result


@router.get("/snapshots", response_model=list[SnapshotResponse])
async def get_snapshots(
    store: Store,
    tenant_id: TenantFilter = None,
    limit: int = Query(30, ge=1, le=100),
) -> Any:
    """Most recent snapshots, newest period first."""
    return await _run_report(
        "snapshots", lambda: list_snapshots(store, tenant_id, limit), cache=False, tenant_id=tenant_id
    )


@router.post("/snapshots", response_model=SnapshotResponse, status_code=status.HTTP_201_CREATED)
async def create_snapshot(request: SnapshotCreateRequest, store: Store) -> Any:
    """Generate and persist a snapshot now.

    With both ``start_date`` and ``end_date`` the snapshot covers exactly that
    window; with neither the period follows from ``type``. One bound alone
    is a bad request.
    """
    try:
        window = Window(
            ensure_utc(request.start_date) if request.start_date else None,
            ensure_utc(request.end_date) if request.end_date else None,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    return await _run_report(
        "snapshot_generate",
        lambda: generate_snapshot(
            store,
            snapshot_type=request.type,
            tenant_id=request.tenant_id,
            window=window,
            generated_by=SnapshotSource.MANUAL.value,
        ),
        cache=False,
    )
