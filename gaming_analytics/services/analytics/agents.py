"""Agent commission and profit from the players each agent brought in."""

from collections import defaultdict
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_

from gaming_analytics.core.config import settings
from gaming_analytics.db.store import RecordStore, Window, for_tenant, to_decimal, within
from gaming_analytics.models import Bet, BetStatus, User, UserRole
from gaming_analytics.services.analytics.common import HUNDRED, money, sum_decimals

AGENT_ROLES = (UserRole.AGENT.value, UserRole.SUB_AGENT.value)

ZERO = Decimal("0")


async def get_agent_profits(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Top agents by profit.

    A player belongs to an agent when the agent is the player's parent agent
    or sub-agent, so one player can count for two agents.
    ``commission = ggr * commission_rate / 100`` and ``profit = ggr - commission``.
    """
    limit = limit or settings.AGENT_PROFIT_LIMIT
    agents = await store.entities(
        User, User.role.in_(AGENT_ROLES), *for_tenant(User.tenant_id, tenant_id), order_by=[User.id]
    )
    if not agents:
        return []
    agent_ids = [agent.id for agent in agents]

    player_rows = await store.aggregate(
        User.id,
        User.parent_agent_id,
        User.sub_agent_id,
        where=[
            User.role == UserRole.PLAYER.value,
            or_(User.parent_agent_id.in_(agent_ids), User.sub_agent_id.in_(agent_ids)),
        ],
    )

    players_of: dict[int, set[int]] = defaultdict(set)
    for player_id, parent_agent_id, sub_agent_id in player_rows:
        for agent_id in (parent_agent_id, sub_agent_id):
            if agent_id is not None:
                players_of[agent_id].add(player_id)

    per_player: dict[int, tuple[Decimal, Decimal]] = {}
    all_players = {player_id for player_id, _, _ in player_rows}
    if all_players:
        bet_rows = await store.aggregate(
            Bet.user_id,
            func.sum(Bet.stake),
            func.sum(Bet.actual_win).filter(Bet.status == BetStatus.WON.value),
            where=[Bet.user_id.in_(all_players), *within(Bet.created_at, window)],
            group_by=[Bet.user_id],
        )
        per_player = {user_id: (to_decimal(stake), to_decimal(won)) for user_id, stake, won in bet_rows}

    results = []
    for agent in agents:
        players = players_of.get(agent.id, set())
        totals = [per_player.get(p, (ZERO, ZERO)) for p in players]
        turnover = sum_decimals(stake for stake, _ in totals)
        payouts = sum_decimals(won for _, won in totals)
        ggr = turnover - payouts
        rate = Decimal(str(agent.commission_rate or 0))
        commission = ggr * rate / HUNDRED
        profit = ggr - commission

        results.append(
            (
                profit,
                agent.id,
                {
                    "agent_id": agent.id,
                    "agent_name": agent.full_name,
                    "email": agent.email,
                    "role": agent.role,
                    "player_count": len(players),
                    "turnover": money(turnover),
                    "ggr": money(ggr),
                    "commission": money(commission),
                    "profit": money(profit),
                    "commission_rate": float(rate),
                },
            )
        )

    results.sort(key=lambda item: (-item[0], item[1]))
    return [row for _, _, row in results[:limit]]
