"""Time-bucketed turnover and deposit/withdrawal series.

The store groups by calendar day; weeks and months are folded from those
day rows here, carrying sums and counts so averages stay exact.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Any

from sqlalchemy import func

from gaming_analytics.db.store import RecordStore, Window, day_of, for_tenant, to_decimal, within
from gaming_analytics.models import GATEWAY_TYPES, Bet, Transaction, TransactionStatus, TransactionType
from gaming_analytics.services.analytics.common import as_date, bucket_key, money, validate_group_by


async def get_turnover(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
    group_by: str | None = None,
) -> list[dict[str, Any]]:
    """Stake totals per bucket, ascending by bucket.

    Without ``group_by`` the whole window is one row with ``period=None``
    (and no rows at all when there are no bets).
    """
    group_by = validate_group_by(group_by, optional=True)
    criteria = [*within(Bet.created_at, window), *for_tenant(Bet.tenant_id, tenant_id)]

    if group_by is None:
        row = await store.aggregate_one(
            func.sum(Bet.stake), func.count(Bet.id), func.sum(Bet.total_odds), where=criteria
        )
        day_rows = [(None, row[0], row[1], row[2])] if row[1] else []
    else:
        day = day_of(Bet.created_at)
        day_rows = await store.aggregate(
            day,
            func.sum(Bet.stake),
            func.count(Bet.id),
            func.sum(Bet.total_odds),
            where=criteria,
            group_by=[day],
        )

    buckets: dict[str | None, list[Any]] = defaultdict(lambda: [Decimal("0"), 0, Decimal("0")])
    for raw_day, stake_sum, bet_count, odds_sum in day_rows:
        key = None if raw_day is None else bucket_key(as_date(raw_day), group_by or "day")
        bucket = buckets[key]
        bucket[0] += to_decimal(stake_sum)
        bucket[1] += int(bet_count or 0)
        bucket[2] += to_decimal(odds_sum)

    result = []
    for key in sorted(buckets, key=lambda k: k or ""):
        turnover, bet_count, odds_sum = buckets[key]
        result.append(
            {
                "period": key,
                "turnover": money(turnover),
                "bet_count": bet_count,
                "avg_stake": money(turnover / bet_count) if bet_count else 0.0,
                "avg_odds": money(odds_sum / bet_count) if bet_count else 0.0,
            }
        )
    return result


async def get_financial_trends(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
    group_by: str = "day",
) -> list[dict[str, Any]]:
    """Completed deposits and withdrawals per bucket, ascending by date."""
    group_by = validate_group_by(group_by)
    day = day_of(Transaction.created_at)
    rows = await store.aggregate(
        day,
        Transaction.type,
        func.sum(Transaction.amount),
        func.count(Transaction.id),
        where=[
            *within(Transaction.created_at, window),
            *for_tenant(Transaction.tenant_id, tenant_id),
            Transaction.status == TransactionStatus.COMPLETED.value,
            Transaction.type.in_(GATEWAY_TYPES),
        ],
        group_by=[day, Transaction.type],
    )

    buckets: dict[str, dict[str, Any]] = {}
    for raw_day, tx_type, amount, count in rows:
        key = bucket_key(as_date(raw_day), group_by)
        bucket = buckets.setdefault(
            key,
            {"deposits": Decimal("0"), "deposit_count": 0, "withdrawals": Decimal("0"), "withdrawal_count": 0},
        )
        if tx_type == TransactionType.DEPOSIT.value:
            bucket["deposits"] += to_decimal(amount)
            bucket["deposit_count"] += int(count)
        else:
            bucket["withdrawals"] += to_decimal(amount)
            bucket["withdrawal_count"] += int(count)

    return [
        {
            "date": key,
            "deposits": money(bucket["deposits"]),
            "deposit_count": bucket["deposit_count"],
            "withdrawals": money(bucket["withdrawals"]),
            "withdrawal_count": bucket["withdrawal_count"],
        }
        for key, bucket in sorted(buckets.items())
    ]
