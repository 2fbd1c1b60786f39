"""Per-tenant GGR, NGR and provider/tenant revenue share.

Tenant NGR uses its own flat rates (``TENANT_TAX_RATE`` and
``TENANT_FEE_RATE``, both on GGR) instead of the platform waterfall in
``revenue``. The two rate sets are separate settings.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Any

from sqlalchemy import func

from gaming_analytics.core.config import settings
from gaming_analytics.db.store import RecordStore, Window, day_of, to_decimal, within
from gaming_analytics.models import (
    BONUS_TYPES,
    Bet,
    BetStatus,
    Tenant,
    TenantStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserRole,
    UserStatus,
)
from gaming_analytics.services.analytics.common import (
    HUNDRED,
    as_date,
    bucket_key,
    gather_all,
    money,
    percent,
    sum_decimals,
    validate_group_by,
)

REPORTED_STATUSES = (TenantStatus.ACTIVE.value, TenantStatus.TRIAL.value)

ZERO = Decimal("0")


def provider_percentage(tenant: Tenant) -> Decimal:
    """Provider share of GGR in percent; unset falls back to the platform default."""
    if tenant.provider_percentage is None:
        return settings.DEFAULT_PROVIDER_PERCENTAGE
    return Decimal(str(tenant.provider_percentage))


def revenue_share(ggr: Decimal, tenant: Tenant) -> dict[str, Any]:
    provider_pct = provider_percentage(tenant)
    tenant_pct = (
        Decimal(str(tenant.tenant_percentage)) if tenant.tenant_percentage is not None else HUNDRED - provider_pct
    )
    provider_amount = ggr * provider_pct / HUNDRED
    return {
        "provider_percentage": float(provider_pct),
        "tenant_percentage": float(tenant_pct),
        "provider_amount": money(provider_amount),
        "tenant_amount": money(ggr - provider_amount),
    }


async def get_ggr_by_tenant(store: RecordStore, window: Window | None = None) -> list[dict[str, Any]]:
    """Revenue breakdown for every active or trial tenant, highest GGR first."""
    tenants = await store.entities(Tenant, Tenant.status.in_(REPORTED_STATUSES), order_by=[Tenant.id])
    if not tenants:
        return []
    tenant_ids = [tenant.id for tenant in tenants]

    bet_scope = [Bet.tenant_id.in_(tenant_ids), *within(Bet.created_at, window)]
    stake_rows, payout_rows, tx_rows, player_rows = await gather_all(
        store.aggregate(
            Bet.tenant_id, func.sum(Bet.stake), func.count(Bet.id), where=bet_scope, group_by=[Bet.tenant_id]
        ),
        store.aggregate(
            Bet.tenant_id,
            func.sum(Bet.actual_win),
            where=[*bet_scope, Bet.status == BetStatus.WON.value],
            group_by=[Bet.tenant_id],
        ),
        store.aggregate(
            Transaction.tenant_id,
            Transaction.type,
            func.sum(Transaction.amount),
            where=[
                Transaction.tenant_id.in_(tenant_ids),
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.type.in_(
                    [TransactionType.DEPOSIT.value, TransactionType.WITHDRAWAL.value, *BONUS_TYPES]
                ),
                *within(Transaction.created_at, window),
            ],
            group_by=[Transaction.tenant_id, Transaction.type],
        ),
        store.aggregate(
            User.tenant_id,
            func.count(User.id),
            where=[
                User.tenant_id.in_(tenant_ids),
                User.role == UserRole.PLAYER.value,
                User.status == UserStatus.ACTIVE.value,
            ],
            group_by=[User.tenant_id],
        ),
    )

    stakes = {tid: (to_decimal(total), int(count)) for tid, total, count in stake_rows}
    payouts = {tid: to_decimal(total) for tid, total in payout_rows}
    active_players = {tid: int(count) for tid, count in player_rows}
    wallet: dict[int, dict[str, Decimal]] = defaultdict(dict)
    for tid, tx_type, total in tx_rows:
        wallet[tid][tx_type] = to_decimal(total)

    tax_rate = settings.TENANT_TAX_RATE
    fee_rate = settings.TENANT_FEE_RATE

    results = []
    for tenant in tenants:
        total_stakes, total_bets = stakes.get(tenant.id, (ZERO, 0))
        total_payouts = payouts.get(tenant.id, ZERO)
        movements = wallet.get(tenant.id, {})
        deposits = movements.get(TransactionType.DEPOSIT.value, ZERO)
        withdrawals = movements.get(TransactionType.WITHDRAWAL.value, ZERO)
        bonuses_paid = sum_decimals(movements.get(bonus_type, ZERO) for bonus_type in BONUS_TYPES)

        ggr = total_stakes - total_payouts
        ngr = ggr - bonuses_paid - ggr * tax_rate - ggr * fee_rate

        results.append(
            (
                ggr,
                tenant.id,
                {
                    "tenant_id": tenant.id,
                    "tenant_name": tenant.display_name,
                    "slug": tenant.slug,
                    "status": tenant.status,
                    "ggr": money(ggr),
                    "ngr": money(ngr),
                    "turnover": money(total_stakes),
                    "total_bets": total_bets,
                    "total_payouts": money(total_payouts),
                    "deposits": money(deposits),
                    "withdrawals": money(withdrawals),
                    "net_deposits": money(deposits - withdrawals),
                    "active_players": active_players.get(tenant.id, 0),
                    "bonuses_paid": money(bonuses_paid),
                    "house_edge": percent(ggr, total_stakes),
                    "revenue_share": revenue_share(ggr, tenant),
                },
            )
        )

    results.sort(key=lambda item: (-item[0], item[1]))
    return [row for _, _, row in results]


async def get_ggr_trend_by_tenant(
    store: RecordStore,
    window: Window | None = None,
    group_by: str = "day",
) -> list[dict[str, Any]]:
    """Stakes, payouts and GGR per (tenant, bucket) for charting."""
    group_by = validate_group_by(group_by)
    day = day_of(Bet.created_at)
    criteria = within(Bet.created_at, window)

    stake_rows, payout_rows = await gather_all(
        store.aggregate(Bet.tenant_id, day, func.sum(Bet.stake), where=criteria, group_by=[Bet.tenant_id, day]),
        store.aggregate(
            Bet.tenant_id,
            day,
            func.sum(Bet.actual_win),
            where=[*criteria, Bet.status == BetStatus.WON.value],
            group_by=[Bet.tenant_id, day],
        ),
    )

    buckets: dict[tuple[int | None, str], list[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
    for tenant_id, raw_day, total in stake_rows:
        buckets[(tenant_id, bucket_key(as_date(raw_day), group_by))][0] += to_decimal(total)
    for tenant_id, raw_day, total in payout_rows:
        buckets[(tenant_id, bucket_key(as_date(raw_day), group_by))][1] += to_decimal(total)

    tenant_ids = {tenant_id for tenant_id, _ in buckets if tenant_id is not None}
    names: dict[int, str] = {}
    if tenant_ids:
        tenants = await store.entities(Tenant, Tenant.id.in_(tenant_ids))
        names = {tenant.id: tenant.display_name for tenant in tenants}

    ordered = sorted(buckets, key=lambda key: (key[1], key[0] is None, key[0] or 0))
    return [
        {
            "tenant_id": tenant_id,
            "tenant_name": names.get(tenant_id, "Unknown") if tenant_id is not None else "Unknown",
            "date": period,
            "stakes": money(buckets[(tenant_id, period)][0]),
            "payouts": money(buckets[(tenant_id, period)][1]),
            "ggr": money(buckets[(tenant_id, period)][0] - buckets[(tenant_id, period)][1]),
        }
        for tenant_id, period in ordered
    ]


def summarize_tenants(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Platform totals over the rows of ``get_ggr_by_tenant``."""

    def total(pick: Any) -> float:
        return money(sum_decimals(Decimal(str(pick(row))) for row in rows))

    return {
        "active_tenants": len(rows),
        "total_ggr": total(lambda row: row["ggr"]),
        "total_ngr": total(lambda row: row["ngr"]),
        "total_turnover": total(lambda row: row["turnover"]),
        "total_provider_revenue": total(lambda row: row["revenue_share"]["provider_amount"]),
        "total_tenant_revenue": total(lambda row: row["revenue_share"]["tenant_amount"]),
    }
