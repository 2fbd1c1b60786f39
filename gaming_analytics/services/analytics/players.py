"""Player counts and the per-player activity list."""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import func

from gaming_analytics.db.store import RecordStore, Window, for_tenant, to_decimal, within
from gaming_analytics.models import (
    Bet,
    BetStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserRole,
    UserStatus,
)
from gaming_analytics.services.analytics.common import ensure_utc, gather_all, money, utcnow


def _in_window(value: datetime, window: Window | None) -> bool:
    if window is None:
        return True
    value = ensure_utc(value)
    if window.start is not None and value < ensure_utc(window.start):
        return False
    return not (window.end is not None and value > ensure_utc(window.end))


async def get_player_metrics(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Registration, activity and depositor counts.

    DAU/WAU/MAU are trailing 1/7/30 days from ``now``, independent of
    ``window``. First-time depositors are users whose earliest completed
    deposit ever falls inside ``window``.
    """
    now = now or utcnow()
    players = [User.role == UserRole.PLAYER.value, *for_tenant(User.tenant_id, tenant_id)]
    bet_scope = for_tenant(Bet.tenant_id, tenant_id)
    deposits = [
        Transaction.type == TransactionType.DEPOSIT.value,
        Transaction.status == TransactionStatus.COMPLETED.value,
        *for_tenant(Transaction.tenant_id, tenant_id),
    ]

    (
        total_registered,
        active_players,
        new_registrations,
        daily_bettors,
        weekly_bettors,
        monthly_bettors,
        depositors,
        first_deposits,
    ) = await gather_all(
        store.count(User.id, *players),
        store.count(User.id, *players, User.status == UserStatus.ACTIVE.value),
        store.count(User.id, *players, *within(User.created_at, window)),
        store.distinct(Bet.user_id, *bet_scope, Bet.created_at >= now - timedelta(days=1)),
        store.distinct(Bet.user_id, *bet_scope, Bet.created_at >= now - timedelta(days=7)),
        store.distinct(Bet.user_id, *bet_scope, Bet.created_at >= now - timedelta(days=30)),
        store.distinct(Transaction.user_id, *deposits, *within(Transaction.created_at, window)),
        store.earliest_by(Transaction.user_id, Transaction.created_at, *deposits),
    )

    first_time_depositors = sum(1 for first in first_deposits.values() if _in_window(first, window))

    return {
        "total_registered": total_registered,
        "active_players": active_players,
        "new_registrations": new_registrations,
        "daily_active_users": len(daily_bettors),
        "weekly_active_users": len(weekly_bettors),
        "monthly_active_users": len(monthly_bettors),
        "depositing_players": len(depositors),
        "first_time_depositors": first_time_depositors,
    }


async def get_player_list(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
    limit: int = 100,
    skip: int = 0,
) -> dict[str, Any]:
    """Newest-first page of players with betting and wallet totals for the window."""
    players = [User.role == UserRole.PLAYER.value, *for_tenant(User.tenant_id, tenant_id)]
    page, total = await gather_all(
        store.entities(User, *players, order_by=[User.created_at.desc(), User.id.desc()], limit=limit, offset=skip),
        store.count(User.id, *players),
    )
    player_ids = [player.id for player in page]
    if not player_ids:
        return {"players": [], "total": total, "limit": limit, "skip": skip}

    won_amount = func.sum(Bet.actual_win).filter(Bet.status == BetStatus.WON.value)
    bet_rows, tx_rows = await gather_all(
        store.aggregate(
            Bet.user_id,
            func.count(Bet.id),
            func.sum(Bet.stake),
            won_amount,
            func.max(Bet.created_at),
            where=[Bet.user_id.in_(player_ids), *within(Bet.created_at, window)],
            group_by=[Bet.user_id],
        ),
        store.aggregate(
            Transaction.user_id,
            Transaction.type,
            func.sum(Transaction.amount),
            where=[
                Transaction.user_id.in_(player_ids),
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.type.in_([TransactionType.DEPOSIT.value, TransactionType.WITHDRAWAL.value]),
                *within(Transaction.created_at, window),
            ],
            group_by=[Transaction.user_id, Transaction.type],
        ),
    )

    bets = {row[0]: row for row in bet_rows}
    wallet: dict[int, dict[str, Decimal]] = defaultdict(lambda: {"deposit": Decimal("0"), "withdrawal": Decimal("0")})
    for user_id, tx_type, amount in tx_rows:
        wallet[user_id][tx_type] = to_decimal(amount)

    rows = []
    for player in page:
        bet_row = bets.get(player.id)
        total_bets = int(bet_row[1]) if bet_row else 0
        total_stakes = to_decimal(bet_row[2]) if bet_row else Decimal("0")
        total_won = to_decimal(bet_row[3]) if bet_row else Decimal("0")
        last_bet = ensure_utc(bet_row[4]) if bet_row and bet_row[4] else None
        deposits = wallet[player.id]["deposit"]
        withdrawals = wallet[player.id]["withdrawal"]
        ggr = total_stakes - total_won
        last_active = ensure_utc(player.last_login) if player.last_login else last_bet

        rows.append(
            {
                "user_id": player.id,
                "name": player.username or player.full_name or "Unknown",
                "email": player.email,
                "phone": player.phone,
                "status": player.status,
                "tenant_id": player.tenant_id,
                "created_at": ensure_utc(player.created_at).isoformat(),
                "last_active": last_active.isoformat() if last_active else None,
                "total_bets": total_bets,
                "total_stakes": money(total_stakes),
                "total_won": money(total_won),
                "ggr": money(ggr),
                "deposits": money(deposits),
                "withdrawals": money(withdrawals),
                "ltv": money(deposits - withdrawals + ggr),
            }
        )

    return {"players": rows, "total": total, "limit": limit, "skip": skip}
