"""Player lifetime value and value segments."""

from decimal import Decimal
from typing import Any

from sqlalchemy import func

from gaming_analytics.db.store import RecordStore, to_decimal
from gaming_analytics.models import Bet, BetStatus, Transaction, TransactionStatus, TransactionType
from gaming_analytics.services.analytics.common import HUNDRED, gather_all, money, percent

# Checked top-down; the first threshold the LTV exceeds wins
LTV_SEGMENTS: tuple[tuple[Decimal, str], ...] = (
    (Decimal("10000"), "whale"),
    (Decimal("5000"), "vip"),
    (Decimal("1000"), "high_value"),
    (Decimal("100"), "regular"),
)

PROJECTION_FACTOR = Decimal("1.2")


def segment_for_ltv(ltv: Decimal | float | int) -> str:
    """Map a lifetime value to its segment label."""
    value = Decimal(str(ltv))
    for threshold, segment in LTV_SEGMENTS:
        if value > threshold:
            return segment
    # Break-even players are still casual; only a net loss to the house is low value
    return "casual" if value >= 0 else "low_value"


def ltv_score(ltv: Decimal) -> float:
    """LTV on a 0-100 scale, one point per 100 of value."""
    return money(min(max(ltv / HUNDRED, Decimal("0")), HUNDRED))


async def calculate_player_ltv(store: RecordStore, user_id: int) -> dict[str, Any]:
    """Lifetime value of one player from all of their bets and wallet history.

    ``projected_value`` is a flat 1.2x of the current LTV, not a forecast.
    """
    bet_scope = Bet.user_id == user_id
    completed = [Transaction.user_id == user_id, Transaction.status == TransactionStatus.COMPLETED.value]

    (total_stake, total_bets), (total_winnings, won_bets), odds_row, (deposits, deposit_count), (
        withdrawals,
        withdrawal_count,
    ) = await gather_all(
        store.sum_and_count(Bet.stake, bet_scope),
        store.sum_and_count(Bet.actual_win, bet_scope, Bet.status == BetStatus.WON.value),
        store.aggregate_one(func.sum(Bet.total_odds), where=[bet_scope]),
        store.sum_and_count(Transaction.amount, *completed, Transaction.type == TransactionType.DEPOSIT.value),
        store.sum_and_count(Transaction.amount, *completed, Transaction.type == TransactionType.WITHDRAWAL.value),
    )

    ltv = total_stake - total_winnings
    odds_sum = to_decimal(odds_row[0])

    return {
        "user_id": user_id,
        "ltv": {
            "total_value": money(ltv),
            "projected_value": money(ltv * PROJECTION_FACTOR),
            "segment": segment_for_ltv(ltv),
            "score": ltv_score(ltv),
        },
        "betting": {
            "total_bets": total_bets,
            "total_stake": money(total_stake),
            "total_winnings": money(total_winnings),
            "net_position": money(ltv),
            "win_rate": percent(won_bets, total_bets),
            "average_stake": money(total_stake / total_bets) if total_bets else 0.0,
            "average_odds": money(odds_sum / total_bets) if total_bets else 0.0,
        },
        "financial": {
            "total_deposits": money(deposits),
            "deposit_count": deposit_count,
            "total_withdrawals": money(withdrawals),
            "withdrawal_count": withdrawal_count,
        },
    }
