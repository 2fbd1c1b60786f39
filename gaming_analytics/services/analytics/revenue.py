"""Gross and net gaming revenue.

GGR is stakes minus winnings paid out. NGR is built from GGR by a fixed
waterfall:

    NGR             = GGR - provider fees - gateway fees - bonuses
    true net profit = NGR - taxes - operational costs

Provider fees, taxes and operational costs are rates on GGR; gateway fees are
a rate on deposit plus withdrawal volume. Amounts are carried as Decimal and
only rounded when the result dict is built.
"""

from decimal import Decimal
from typing import Any

import structlog

from gaming_analytics.core.config import settings
from gaming_analytics.db.store import RecordStore, Window, for_tenant, within
from gaming_analytics.models import BONUS_TYPES, GATEWAY_TYPES, Bet, BetStatus, Transaction, TransactionStatus
from gaming_analytics.services.analytics.common import HUNDRED, as_rate, gather_all, money, percent

logger = structlog.get_logger()


async def _ggr_components(
    store: RecordStore, window: Window | None, tenant_id: int | None
) -> tuple[Decimal, int, Decimal, int]:
    criteria = [*within(Bet.created_at, window), *for_tenant(Bet.tenant_id, tenant_id)]
    (total_stakes, total_bets), (total_payouts, won_bets) = await gather_all(
        store.sum_and_count(Bet.stake, *criteria),
        store.sum_and_count(Bet.actual_win, *criteria, Bet.status == BetStatus.WON.value),
    )
    return total_stakes, total_bets, total_payouts, won_bets


def _ggr_record(
    total_stakes: Decimal, total_bets: int, total_payouts: Decimal, won_bets: int
) -> dict[str, Any]:
    ggr = total_stakes - total_payouts
    return {
        "ggr": money(ggr),
        "total_stakes": money(total_stakes),
        "total_payouts": money(total_payouts),
        "total_bets": total_bets,
        "won_bets": won_bets,
        "house_edge": percent(ggr, total_stakes),
    }


async def calculate_ggr(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
) -> dict[str, Any]:
    """Gross gaming revenue for a window.

    Stakes count every bet in the window whatever its status; payouts count
    ``actual_win`` of won bets only.
    """
    components = await _ggr_components(store, window, tenant_id)
    return _ggr_record(*components)


async def calculate_ngr(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
    provider_fee_rate: Decimal | float | None = None,
    gateway_fee_rate: Decimal | float | None = None,
    tax_rate: Decimal | float | None = None,
) -> dict[str, Any]:
    """Net gaming revenue and true net profit for a window.

    Args:
        store: Record store
        window: Time window (None for all time)
        tenant_id: Tenant filter (None for platform-wide)
        provider_fee_rate: Share of GGR paid to game providers (default 0.12)
        gateway_fee_rate: Share of deposit/withdrawal volume paid to gateways (default 0.025)
        tax_rate: Gaming tax on GGR (default 0.15)

    Returns:
        The GGR fields plus the full fee, bonus, tax and profit breakdown
    """
    provider_rate = as_rate(settings.NGR_PROVIDER_FEE_RATE if provider_fee_rate is None else provider_fee_rate)
    gateway_rate = as_rate(settings.NGR_GATEWAY_FEE_RATE if gateway_fee_rate is None else gateway_fee_rate)
    taxes_rate = as_rate(settings.NGR_TAX_RATE if tax_rate is None else tax_rate)
    operational_rate = settings.NGR_OPERATIONAL_COST_RATE

    tx_criteria = [
        *within(Transaction.created_at, window),
        *for_tenant(Transaction.tenant_id, tenant_id),
        Transaction.status == TransactionStatus.COMPLETED.value,
    ]

    ggr_components, (bonuses_paid, bonus_count), (gateway_volume, transaction_count) = await gather_all(
        _ggr_components(store, window, tenant_id),
        store.sum_and_count(Transaction.amount, *tx_criteria, Transaction.type.in_(BONUS_TYPES)),
        store.sum_and_count(Transaction.amount, *tx_criteria, Transaction.type.in_(GATEWAY_TYPES)),
    )
    total_stakes, total_bets, total_payouts, won_bets = ggr_components
    ggr = total_stakes - total_payouts

    provider_fees = ggr * provider_rate
    gateway_fees = gateway_volume * gateway_rate
    ngr = ggr - provider_fees - gateway_fees - bonuses_paid

    taxes = ggr * taxes_rate
    operational_costs = ggr * operational_rate
    true_net_profit = ngr - taxes - operational_costs

    # A negative GGR makes a margin meaningless, report 0 like an empty period
    profit_margin = percent(true_net_profit, ggr) if ggr > 0 else 0.0

    logger.debug(
        "ngr_calculated",
        tenant_id=tenant_id,
        ggr=str(ggr),
        ngr=str(ngr),
        true_net_profit=str(true_net_profit),
    )

    return {
        **_ggr_record(total_stakes, total_bets, total_payouts, won_bets),
        "provider_fees": money(provider_fees),
        "provider_fee_rate": float(provider_rate * HUNDRED),
        "gateway_fees": money(gateway_fees),
        "gateway_fee_rate": float(gateway_rate * HUNDRED),
        "gateway_volume": money(gateway_volume),
        "transaction_count": transaction_count,
        "bonuses_paid": money(bonuses_paid),
        "bonus_count": bonus_count,
        "taxes": money(taxes),
        "tax_rate": float(taxes_rate * HUNDRED),
        "operational_costs": money(operational_costs),
        "ngr": money(ngr),
        "true_net_profit": money(true_net_profit),
        "profit_margin": profit_margin,
    }


async def get_product_split(
    store: RecordStore,
    window: Window | None = None,
    tenant_id: int | None = None,
) -> dict[str, Any]:
    """GGR and turnover by product line.

    Bets carry no product type yet, so everything is sportsbook.
    """
    ggr = await calculate_ggr(store, window, tenant_id)
    empty = {"ggr": 0.0, "turnover": 0.0, "bet_count": 0, "percentage": 0.0}
    return {
        "sportsbook": {
            "ggr": ggr["ggr"],
            "turnover": ggr["total_stakes"],
            "bet_count": ggr["total_bets"],
            "percentage": 100.0,
        },
        "casino": dict(empty),
        "virtual": dict(empty),
    }
