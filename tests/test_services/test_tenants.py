"""Tests for per-tenant revenue and revenue share."""

from decimal import Decimal
from typing import Any

import pytest

from gaming_analytics.db.store import RecordStore
from gaming_analytics.models import BetStatus, TenantStatus, TransactionStatus, TransactionType, UserStatus
from gaming_analytics.services.analytics import get_ggr_by_tenant, get_ggr_trend_by_tenant, summarize_tenants


@pytest.fixture
async def tenants(
    create_tenant: Any, create_user: Any, create_bet: Any, create_transaction: Any
) -> dict[str, Any]:
    """Two active tenants with bets, a suspended one and an idle trial."""
    alpha = await create_tenant(name="Alpha", slug="alpha", brand_name="Alpha Bet")
    beta = await create_tenant(
        name="Beta", slug="beta", provider_percentage=None, tenant_percentage=Decimal("75")
    )
    suspended = await create_tenant(name="Gamma", slug="gamma", status=TenantStatus.SUSPENDED.value)
    trial = await create_tenant(name="Delta", slug="delta", status=TenantStatus.TRIAL.value)

    alpha_player = await create_user(tenant_id=alpha.id)
    await create_user(tenant_id=alpha.id, status=UserStatus.SUSPENDED.value)
    await create_bet(alpha_player, stake=1500)
    await create_bet(alpha_player, stake=500, status=BetStatus.WON.value, actual_win=1000)
    await create_transaction(alpha_player, amount=400)
    await create_transaction(alpha_player, type=TransactionType.WITHDRAWAL.value, amount=100)
    await create_transaction(alpha_player, type=TransactionType.BONUS.value, amount=50)
    await create_transaction(
        alpha_player, type=TransactionType.CASHBACK.value, amount=80, status=TransactionStatus.FAILED.value
    )

    beta_player = await create_user(tenant_id=beta.id)
    await create_bet(beta_player, stake=3000)

    suspended_player = await create_user(tenant_id=suspended.id)
    await create_bet(suspended_player, stake=9999)

    return {"alpha": alpha, "beta": beta, "suspended": suspended, "trial": trial}


class TestGetGGRByTenant:
    """Test the per-tenant revenue breakdown."""

    @pytest.mark.asyncio
    async def test_rows_for_reported_tenants_by_ggr(self, store: RecordStore, tenants: dict[str, Any]) -> None:
        """Test suspended tenants are left out and rows are ordered by GGR."""
        result = await get_ggr_by_tenant(store)

        assert [row["tenant_id"] for row in result] == [
            tenants["beta"].id,
            tenants["alpha"].id,
            tenants["trial"].id,
        ]

    @pytest.mark.asyncio
    async def test_tenant_ngr_and_revenue_share(self, store: RecordStore, tenants: dict[str, Any]) -> None:
        """Test tenant NGR uses the flat tenant rates and the provider percentage."""
        result = await get_ggr_by_tenant(store)
        alpha = next(row for row in result if row["tenant_id"] == tenants["alpha"].id)

        assert alpha["tenant_name"] == "Alpha Bet"
        assert alpha["slug"] == "alpha"
        assert alpha["ggr"] == 1000.0
        assert alpha["turnover"] == 2000.0
        assert alpha["total_bets"] == 2
        assert alpha["total_payouts"] == 1000.0
        assert alpha["house_edge"] == 50.0
        assert alpha["bonuses_paid"] == 50.0
        assert alpha["ngr"] == 780.0
        assert alpha["deposits"] == 400.0
        assert alpha["withdrawals"] == 100.0
        assert alpha["net_deposits"] == 300.0
        assert alpha["active_players"] == 1
        assert alpha["revenue_share"] == {
            "provider_percentage": 10.0,
            "tenant_percentage": 90.0,
            "provider_amount": 100.0,
            "tenant_amount": 900.0,
        }

    @pytest.mark.asyncio
    async def test_missing_provider_percentage_uses_default(
        self, store: RecordStore, tenants: dict[str, Any]
    ) -> None:
        """Test an unset provider percentage falls back to the platform default."""
        result = await get_ggr_by_tenant(store)
        beta = result[0]

        assert beta["ggr"] == 3000.0
        assert beta["ngr"] == 2490.0
        assert beta["revenue_share"]["provider_percentage"] == 10.0
        assert beta["revenue_share"]["tenant_percentage"] == 75.0
        assert beta["revenue_share"]["provider_amount"] == 300.0
        assert beta["revenue_share"]["tenant_amount"] == 2700.0

    @pytest.mark.asyncio
    async def test_idle_tenant_has_zero_row(self, store: RecordStore, tenants: dict[str, Any]) -> None:
        """Test a tenant without activity still gets a row of zeros."""
        result = await get_ggr_by_tenant(store)
        trial = result[-1]

        assert trial["ggr"] == 0.0
        assert trial["house_edge"] == 0.0
        assert trial["active_players"] == 0

    @pytest.mark.asyncio
    async def test_no_tenants(self, store: RecordStore) -> None:
        """Test an empty store returns no rows."""
        assert await get_ggr_by_tenant(store) == []

    @pytest.mark.asyncio
    async def test_summary_totals(self, store: RecordStore, tenants: dict[str, Any]) -> None:
        """Test platform totals add up the tenant rows."""
        rows = await get_ggr_by_tenant(store)

        assert summarize_tenants(rows) == {
            "active_tenants": 3,
            "total_ggr": 4000.0,
            "total_ngr": 3270.0,
            "total_turnover": 5000.0,
            "total_provider_revenue": 400.0,
            "total_tenant_revenue": 3600.0,
        }


class TestGetGGRTrendByTenant:
    """Test the per-tenant GGR trend."""

    @pytest.mark.asyncio
    async def test_daily_trend_per_tenant(
        self, store: RecordStore, tenants: dict[str, Any], create_user: Any, create_bet: Any
    ) -> None:
        """Test rows per tenant and day, with bets outside any tenant shown as Unknown."""
        walk_in = await create_user()
        await create_bet(walk_in, stake=10)

        result = await get_ggr_trend_by_tenant(store)

        assert [(row["tenant_id"], row["tenant_name"]) for row in result] == [
            (tenants["alpha"].id, "Alpha Bet"),
            (tenants["beta"].id, "Beta"),
            (tenants["suspended"].id, "Gamma"),
            (None, "Unknown"),
        ]
        alpha = result[0]
        assert alpha["date"] == "2026-10-18"
        assert alpha["stakes"] == 2000.0
        assert alpha["payouts"] == 1000.0
        assert alpha["ggr"] == 1000.0

    @pytest.mark.asyncio
    async def test_monthly_trend(self, store: RecordStore, tenants: dict[str, Any]) -> None:
        """Test month buckets."""
        result = await get_ggr_trend_by_tenant(store, group_by="month")

        assert {row["date"] for row in result} == {"2026-10"}

    @pytest.mark.asyncio
    async def test_invalid_group_by(self, store: RecordStore) -> None:
        """Test an unknown grouping is rejected."""
        with pytest.raises(ValueError):
            await get_ggr_trend_by_tenant(store, group_by="quarter")
