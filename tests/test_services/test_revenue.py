"""Tests for GGR, NGR and product split."""

import json
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from gaming_analytics.db.store import RecordStore, Window
from gaming_analytics.models import BetStatus, TransactionStatus, TransactionType
from gaming_analytics.services.analytics import calculate_ggr, calculate_ngr, get_product_split


@pytest.fixture
async def betting_day(create_user: Any, create_bet: Any, create_transaction: Any) -> Any:
    """One player: 5000 lost, 5000 won paying 9200, plus wallet movements."""
    player = await create_user()
    await create_bet(player, stake=5000)
    await create_bet(player, stake=5000, total_odds="1.84", status=BetStatus.WON.value, actual_win=9200)

    await create_transaction(player, amount=3000)
    await create_transaction(player, type=TransactionType.WITHDRAWAL.value, amount=2000)
    await create_transaction(player, type=TransactionType.BONUS.value, amount=50)
    await create_transaction(
        player, type=TransactionType.FREE_BET.value, amount=500, status=TransactionStatus.PENDING.value
    )
    return player


class TestCalculateGGR:
    """Test gross gaming revenue."""

    @pytest.mark.asyncio
    async def test_ggr_is_stakes_minus_payouts(self, store: RecordStore, betting_day: Any) -> None:
        """Test GGR counts every stake and only winnings of won bets."""
        result = await calculate_ggr(store)

        assert result["total_stakes"] == 10000.0
        assert result["total_payouts"] == 9200.0
        assert result["ggr"] == 800.0
        assert result["total_bets"] == 2
        assert result["won_bets"] == 1
        assert result["house_edge"] == 8.0

    @pytest.mark.asyncio
    async def test_ggr_empty_store(self, store: RecordStore) -> None:
        """Test an empty store yields zeros instead of errors."""
        result = await calculate_ggr(store)

        assert result == {
            "ggr": 0.0,
            "total_stakes": 0.0,
            "total_payouts": 0.0,
            "total_bets": 0,
            "won_bets": 0,
            "house_edge": 0.0,
        }

    @pytest.mark.asyncio
    async def test_ggr_can_be_negative(self, store: RecordStore, create_user: Any, create_bet: Any) -> None:
        """Test a losing period reports negative GGR and house edge."""
        player = await create_user()
        await create_bet(player, stake=100, total_odds="3.00", status=BetStatus.WON.value, actual_win=300)

        result = await calculate_ggr(store)

        assert result["ggr"] == -200.0
        assert result["house_edge"] == -200.0

    @pytest.mark.asyncio
    async def test_ggr_tenant_filter(
        self, store: RecordStore, create_tenant: Any, create_user: Any, create_bet: Any
    ) -> None:
        """Test only bets of the requested tenant are counted."""
        tenant_a = await create_tenant(name="Alpha")
        tenant_b = await create_tenant(name="Beta")
        player_a = await create_user(tenant_id=tenant_a.id)
        player_b = await create_user(tenant_id=tenant_b.id)
        await create_bet(player_a, stake=100)
        await create_bet(player_b, stake=40)

        result = await calculate_ggr(store, tenant_id=tenant_a.id)

        assert result["total_stakes"] == 100.0
        assert result["total_bets"] == 1

    @pytest.mark.asyncio
    async def test_ggr_window_bounds_are_inclusive(
        self, store: RecordStore, create_user: Any, create_bet: Any, now: datetime
    ) -> None:
        """Test bets exactly on the window edges are included."""
        player = await create_user()
        start = now - timedelta(days=3)
        end = now - timedelta(days=1)
        await create_bet(player, stake=10, created_at=start)
        await create_bet(player, stake=20, created_at=end)
        await create_bet(player, stake=40, created_at=start - timedelta(seconds=1))
        await create_bet(player, stake=80, created_at=end + timedelta(seconds=1))

        result = await calculate_ggr(store, Window(start, end))

        assert result["total_stakes"] == 30.0
        assert result["total_bets"] == 2


class TestCalculateNGR:
    """Test the net gaming revenue waterfall."""

    @pytest.mark.asyncio
    async def test_ngr_waterfall_with_default_rates(self, store: RecordStore, betting_day: Any) -> None:
        """Test every step of the waterfall with the configured rates."""
        result = await calculate_ngr(store)

        assert result["ggr"] == 800.0
        assert result["provider_fees"] == 96.0
        assert result["provider_fee_rate"] == 12.0
        assert result["gateway_volume"] == 5000.0
        assert result["gateway_fees"] == 125.0
        assert result["gateway_fee_rate"] == 2.5
        assert result["transaction_count"] == 2
        assert result["bonuses_paid"] == 50.0
        assert result["bonus_count"] == 1
        assert result["ngr"] == 529.0
        assert result["taxes"] == 120.0
        assert result["tax_rate"] == 15.0
        assert result["operational_costs"] == 80.0
        assert result["true_net_profit"] == 329.0
        assert result["profit_margin"] == 41.13

    @pytest.mark.asyncio
    async def test_ngr_rate_overrides(self, store: RecordStore, betting_day: Any) -> None:
        """Test explicit rates replace the defaults."""
        result = await calculate_ngr(store, provider_fee_rate=0, gateway_fee_rate=0, tax_rate=Decimal("0.2"))

        assert result["provider_fees"] == 0.0
        assert result["gateway_fees"] == 0.0
        assert result["ngr"] == 750.0
        assert result["taxes"] == 160.0
        assert result["true_net_profit"] == 510.0

    @pytest.mark.asyncio
    async def test_ngr_empty_store(self, store: RecordStore) -> None:
        """Test an empty period has zero NGR and zero margin."""
        result = await calculate_ngr(store)

        assert result["ngr"] == 0.0
        assert result["true_net_profit"] == 0.0
        assert result["profit_margin"] == 0.0

    @pytest.mark.asyncio
    async def test_ngr_margin_is_zero_for_negative_ggr(
        self, store: RecordStore, create_user: Any, create_bet: Any
    ) -> None:
        """Test a negative GGR reports a zero profit margin."""
        player = await create_user()
        await create_bet(player, stake=100, total_odds="3.00", status=BetStatus.WON.value, actual_win=300)

        result = await calculate_ngr(store)

        assert result["ggr"] == -200.0
        assert result["profit_margin"] == 0.0

    @pytest.mark.asyncio
    async def test_ngr_is_repeatable(
        self, store: RecordStore, create_tenant: Any, create_user: Any, create_bet: Any, now: datetime
    ) -> None:
        """Test the same window and tenant over an unchanged store give identical output."""
        tenant = await create_tenant()
        player = await create_user(tenant_id=tenant.id)
        await create_bet(player, stake=300)
        await create_bet(player, stake=100, status=BetStatus.WON.value, actual_win=180)
        window = Window(now - timedelta(days=7), now)

        first = await calculate_ngr(store, window, tenant.id)
        second = await calculate_ngr(store, window, tenant.id)

        assert first["ggr"] == 220.0
        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)


class TestProductSplit:
    """Test product split."""

    @pytest.mark.asyncio
    async def test_all_revenue_is_sportsbook(self, store: RecordStore, betting_day: Any) -> None:
        """Test sportsbook carries all revenue and the other products are empty."""
        result = await get_product_split(store)

        assert result["sportsbook"] == {"ggr": 800.0, "turnover": 10000.0, "bet_count": 2, "percentage": 100.0}
        assert result["casino"]["ggr"] == 0.0
        assert result["virtual"]["bet_count"] == 0
