"""Tests for player lifetime value."""

from decimal import Decimal
from typing import Any

import pytest

from gaming_analytics.db.store import RecordStore
from gaming_analytics.models import BetStatus, TransactionStatus, TransactionType
from gaming_analytics.services.analytics import calculate_player_ltv, segment_for_ltv
from gaming_analytics.services.analytics.ltv import ltv_score


class TestSegmentation:
    """Test LTV segment thresholds."""

    @pytest.mark.parametrize(
        ("ltv", "segment"),
        [
            (-5, "low_value"),
            (0, "casual"),
            (50, "casual"),
            (100, "casual"),
            (500, "regular"),
            (1000, "regular"),
            (2000, "high_value"),
            (7000, "vip"),
            (10000, "vip"),
            (15000, "whale"),
        ],
    )
    def test_segment_for_ltv(self, ltv: int, segment: str) -> None:
        """Test each value lands in the first segment whose threshold it exceeds."""
        assert segment_for_ltv(ltv) == segment

    def test_score_is_clamped(self) -> None:
        """Test the score stays between 0 and 100."""
        assert ltv_score(Decimal("-500")) == 0.0
        assert ltv_score(Decimal("150")) == 1.5
        assert ltv_score(Decimal("15000")) == 100.0


class TestCalculatePlayerLTV:
    """Test the lifetime value report."""

    @pytest.mark.asyncio
    async def test_full_profile(
        self, store: RecordStore, create_user: Any, create_bet: Any, create_transaction: Any
    ) -> None:
        """Test value, betting profile and wallet totals over the player's whole history."""
        player = await create_user()
        await create_bet(player, stake=100, total_odds="2.00")
        await create_bet(player, stake=200, total_odds="3.00")
        await create_bet(player, stake=100, total_odds="2.50", status=BetStatus.WON.value, actual_win=250)
        await create_transaction(player, amount=500)
        await create_transaction(player, amount=300)
        await create_transaction(player, amount=1000, status=TransactionStatus.PENDING.value)
        await create_transaction(player, type=TransactionType.WITHDRAWAL.value, amount=200)

        result = await calculate_player_ltv(store, player.id)

        assert result["user_id"] == player.id
        assert result["ltv"] == {
            "total_value": 150.0,
            "projected_value": 180.0,
            "segment": "regular",
            "score": 1.5,
        }
        assert result["betting"] == {
            "total_bets": 3,
            "total_stake": 400.0,
            "total_winnings": 250.0,
            "net_position": 150.0,
            "win_rate": 33.33,
            "average_stake": 133.33,
            "average_odds": 2.5,
        }
        assert result["financial"] == {
            "total_deposits": 800.0,
            "deposit_count": 2,
            "total_withdrawals": 200.0,
            "withdrawal_count": 1,
        }

    @pytest.mark.asyncio
    async def test_player_without_history(self, store: RecordStore, create_user: Any) -> None:
        """Test a player with no bets has zero value and no division errors."""
        player = await create_user()

        result = await calculate_player_ltv(store, player.id)

        assert result["ltv"]["total_value"] == 0.0
        assert result["ltv"]["segment"] == "casual"
        assert result["betting"]["win_rate"] == 0.0
        assert result["betting"]["average_stake"] == 0.0
        assert result["betting"]["average_odds"] == 0.0

    @pytest.mark.asyncio
    async def test_only_own_bets_count(self, store: RecordStore, create_user: Any, create_bet: Any) -> None:
        """Test other players' bets do not leak into the value."""
        player = await create_user()
        other = await create_user(email="other@example.com")
        await create_bet(player, stake=20)
        await create_bet(other, stake=5000)

        result = await calculate_player_ltv(store, player.id)

        assert result["ltv"]["total_value"] == 20.0
        assert result["ltv"]["segment"] == "casual"

    @pytest.mark.asyncio
    async def test_net_position_is_house_view(self, store: RecordStore, create_user: Any, create_bet: Any) -> None:
        """Test the betting net position and the lifetime value share one sign."""
        player = await create_user()
        await create_bet(player, stake=100)

        result = await calculate_player_ltv(store, player.id)

        assert result["ltv"]["total_value"] == 100.0
        assert result["betting"]["net_position"] == 100.0
