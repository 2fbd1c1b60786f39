"""Tests for agent commission and profit."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from gaming_analytics.db.store import RecordStore, Window
from gaming_analytics.models import BetStatus, UserRole
from gaming_analytics.services.analytics import get_agent_profits


@pytest.fixture
async def agents(create_user: Any, create_bet: Any) -> dict[str, Any]:
    """An agent with one player, a sub-agent with one player and an agent with none."""
    agent = await create_user(
        role=UserRole.AGENT.value, full_name="Ana Agent", email="ana@example.com", commission_rate=Decimal("10")
    )
    sub_agent = await create_user(
        role=UserRole.SUB_AGENT.value, full_name="Sam Sub", email="sam@example.com", commission_rate=Decimal("20")
    )
    idle = await create_user(role=UserRole.AGENT.value, full_name="Ida Idle", email="ida@example.com")

    direct = await create_user(parent_agent_id=agent.id)
    await create_bet(direct, stake=500)
    await create_bet(direct, stake=200, status=BetStatus.WON.value, actual_win=400)

    referred = await create_user(sub_agent_id=sub_agent.id)
    await create_bet(referred, stake=100)

    return {"agent": agent, "sub_agent": sub_agent, "idle": idle, "direct": direct}


class TestGetAgentProfits:
    """Test the agent breakdown."""

    @pytest.mark.asyncio
    async def test_commission_and_profit(self, store: RecordStore, agents: dict[str, Any]) -> None:
        """Test commission is a share of the players' GGR and profit is the rest."""
        result = await get_agent_profits(store)

        assert result[0] == {
            "agent_id": agents["agent"].id,
            "agent_name": "Ana Agent",
            "email": "ana@example.com",
            "role": "agent",
            "player_count": 1,
            "turnover": 700.0,
            "ggr": 300.0,
            "commission": 30.0,
            "profit": 270.0,
            "commission_rate": 10.0,
        }

    @pytest.mark.asyncio
    async def test_sorted_by_profit(self, store: RecordStore, agents: dict[str, Any]) -> None:
        """Test agents are ordered by profit with idle agents last."""
        result = await get_agent_profits(store)

        assert [row["agent_id"] for row in result] == [
            agents["agent"].id,
            agents["sub_agent"].id,
            agents["idle"].id,
        ]
        assert result[1]["commission"] == 20.0
        assert result[1]["profit"] == 80.0
        assert result[2]["player_count"] == 0
        assert result[2]["profit"] == 0.0

    @pytest.mark.asyncio
    async def test_player_counts_for_both_agents(
        self, store: RecordStore, agents: dict[str, Any], create_user: Any, create_bet: Any
    ) -> None:
        """Test a player linked as parent and sub-agent counts for both."""
        shared = await create_user(parent_agent_id=agents["agent"].id, sub_agent_id=agents["sub_agent"].id)
        await create_bet(shared, stake=50)

        result = {row["agent_id"]: row for row in await get_agent_profits(store)}

        assert result[agents["agent"].id]["player_count"] == 2
        assert result[agents["agent"].id]["turnover"] == 750.0
        assert result[agents["sub_agent"].id]["player_count"] == 2
        assert result[agents["sub_agent"].id]["turnover"] == 150.0

    @pytest.mark.asyncio
    async def test_limit(self, store: RecordStore, agents: dict[str, Any]) -> None:
        """Test only the top agents are returned."""
        result = await get_agent_profits(store, limit=1)

        assert len(result) == 1
        assert result[0]["agent_id"] == agents["agent"].id

    @pytest.mark.asyncio
    async def test_window(self, store: RecordStore, agents: dict[str, Any], now: datetime) -> None:
        """Test bets outside the window are ignored."""
        result = await get_agent_profits(store, Window(now - timedelta(hours=1), now))

        assert all(row["turnover"] == 0.0 for row in result)

    @pytest.mark.asyncio
    async def test_no_agents(self, store: RecordStore, create_user: Any) -> None:
        """Test a store without agents returns no rows."""
        await create_user()

        assert await get_agent_profits(store) == []
