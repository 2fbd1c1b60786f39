"""Churn and at-risk classification.

Two rule-based classifiers. Neither is a trained model: the pattern
detector is an ordered cascade of guard clauses and the first rule that
matches decides the player's list, so every player lands in exactly one of
churned, at-risk or healthy per run.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import select

from gaming_analytics.core.config import settings
from gaming_analytics.db.store import RecordStore, for_tenant
from gaming_analytics.models import Bet, User, UserRole
from gaming_analytics.services.analytics.common import (
    days_between,
    ensure_utc,
    gather_all,
    money,
    percent,
    sum_decimals,
    utcnow,
)

logger = structlog.get_logger()

PATTERN_LOOKBACK = timedelta(days=14)
ACTIVITY_WINDOW = timedelta(days=7)
REGULAR_ACTIVE_DAYS = 4
LAPSED_DAYS = 7

URGENT_THRESHOLD = 80
WARNING_THRESHOLD = 60


def _player_criteria(tenant_id: int | None) -> list[Any]:
    return [User.role == UserRole.PLAYER.value, *for_tenant(User.tenant_id, tenant_id)]


def _player_ids(tenant_id: int | None) -> Any:
    return select(User.id).where(*_player_criteria(tenant_id))


def _player_ref(player: User) -> dict[str, Any]:
    return {
        "user_id": player.id,
        "name": player.display_name,
        "email": player.email,
    }


def suggested_action(churn_probability: int | float) -> str:
    """Retention play for an at-risk player, by probability tier."""
    if churn_probability > URGENT_THRESHOLD:
        return "Urgent: Send personalized bonus offer"
    if churn_probability > WARNING_THRESHOLD:
        return "Send re-engagement email with free bet"
    return "Add to re-engagement campaign"


async def detect_churn(
    store: RecordStore,
    tenant_id: int | None = None,
    inactive_days: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Baseline churn from days since the last sign of life.

    Last activity is the later of last bet and last login, or account creation
    when the player has neither. ``inactive_days`` or more is churned, half of
    that or more is at risk.
    """
    now = now or utcnow()
    inactive_days = inactive_days or settings.CHURN_INACTIVE_DAYS

    players, last_bets = await gather_all(
        store.entities(User, *_player_criteria(tenant_id), order_by=[User.id]),
        store.latest_by(Bet.user_id, Bet.created_at, Bet.user_id.in_(_player_ids(tenant_id))),
    )

    churned: list[dict[str, Any]] = []
    at_risk: list[dict[str, Any]] = []

    for player in players:
        seen = [ensure_utc(ts) for ts in (last_bets.get(player.id), player.last_login) if ts is not None]
        last_activity = max(seen) if seen else ensure_utc(player.created_at)
        days = days_between(now, last_activity)

        record = {
            **_player_ref(player),
            "last_activity": last_activity.isoformat(),
            "days_since_activity": days,
        }
        if days >= inactive_days:
            churned.append({**record, "status": "churned"})
        elif days >= inactive_days / 2:
            at_risk.append(
                {
                    **record,
                    "churn_probability": min(100.0, percent(days, inactive_days)),
                    "status": "at_risk",
                }
            )

    total = len(players)
    return {
        "churned_players": churned,
        "at_risk_players": at_risk,
        "healthy_count": total - len(churned) - len(at_risk),
        "total_players": total,
        "churn_rate": percent(len(churned), total),
        "at_risk_count": len(at_risk),
    }


def _classify_pattern(
    player: User,
    bets: list[tuple[datetime, Decimal]],
    inactive_days: int,
    now: datetime,
) -> tuple[str, dict[str, Any]]:
    """Apply the rule cascade to one player's bets from the lookback window."""
    ref = _player_ref(player)

    if not bets:
        last_seen = ensure_utc(player.last_login or player.created_at)
        return "churned", {
            **ref,
            "phone": player.phone,
            "last_activity": last_seen.isoformat(),
            "days_since_activity": days_between(now, last_seen),
            "status": "churned",
            "reason": "No activity in 14+ days",
            "churn_probability": 100,
        }

    last_bet = max(placed_at for placed_at, _ in bets)
    days_since_last_bet = days_between(now, last_bet)

    # Anchored on the last bet, not on now
    window_start = last_bet - ACTIVITY_WINDOW
    unique_active_days = len({placed_at.date() for placed_at, _ in bets if window_start <= placed_at <= last_bet})

    if days_since_last_bet >= inactive_days and unique_active_days >= REGULAR_ACTIVE_DAYS:
        probability = min(100, 50 + days_since_last_bet * 5 + unique_active_days * 3)
        return "at_risk", {
            **ref,
            "phone": player.phone,
            "last_activity": last_bet.isoformat(),
            "days_since_activity": days_since_last_bet,
            "previous_activity_level": unique_active_days,
            "previous_activity_desc": f"{unique_active_days} days active in week before",
            "total_wagered_recently": money(sum_decimals(stake for _, stake in bets)),
            "status": "at_risk",
            "reason": f"Was active {unique_active_days}/7 days, now inactive {days_since_last_bet} days",
            "churn_probability": probability,
            "suggested_action": suggested_action(probability),
        }

    if days_since_last_bet >= LAPSED_DAYS:
        return "churned", {
            **ref,
            "last_activity": last_bet.isoformat(),
            "days_since_activity": days_since_last_bet,
            "status": "churned",
            "reason": f"Inactive for {days_since_last_bet} days",
            "churn_probability": min(100, 70 + days_since_last_bet),
        }

    return "healthy", {
        "user_id": player.id,
        "name": player.display_name,
        "last_activity": last_bet.isoformat(),
        "days_since_activity": days_since_last_bet,
    }


async def detect_churn_patterns(
    store: RecordStore,
    tenant_id: int | None = None,
    inactive_days: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Flag regulars who suddenly went quiet.

    A player who bet on at least 4 distinct days in the week up to their last
    bet and has now been silent for ``inactive_days`` is at risk. Anyone silent
    for 7 days or more, or with no bets in 14 days, is churned.
    """
    now = now or utcnow()
    inactive_days = inactive_days or settings.CHURN_PATTERN_INACTIVE_DAYS

    players, bet_rows = await gather_all(
        store.entities(User, *_player_criteria(tenant_id), order_by=[User.id]),
        store.aggregate(
            Bet.user_id,
            Bet.created_at,
            Bet.stake,
            where=[Bet.user_id.in_(_player_ids(tenant_id)), Bet.created_at >= now - PATTERN_LOOKBACK],
        ),
    )

    recent: dict[int, list[tuple[datetime, Decimal]]] = defaultdict(list)
    for user_id, created_at, stake in bet_rows:
        recent[user_id].append((ensure_utc(created_at), Decimal(str(stake))))

    lists: dict[str, list[dict[str, Any]]] = {"at_risk": [], "churned": [], "healthy": []}
    for player in players:
        outcome, record = _classify_pattern(player, recent.get(player.id, []), inactive_days, now)
        lists[outcome].append(record)

    at_risk = sorted(lists["at_risk"], key=lambda p: -p["churn_probability"])
    churned = lists["churned"]
    healthy = lists["healthy"]
    total = len(players)

    logger.debug(
        "churn_patterns_detected",
        tenant_id=tenant_id,
        total_players=total,
        at_risk=len(at_risk),
        churned=len(churned),
    )

    return {
        "at_risk_players": at_risk,
        "churned_players": churned,
        "healthy_players": healthy,
        "healthy_count": len(healthy),
        "total_players": total,
        "at_risk_count": len(at_risk),
        "churned_count": len(churned),
        "churn_rate": percent(len(churned), total),
        "at_risk_rate": percent(len(at_risk), total),
        "summary": {
            "urgent": sum(1 for p in at_risk if p["churn_probability"] > URGENT_THRESHOLD),
            "warning": sum(
                1 for p in at_risk if WARNING_THRESHOLD < p["churn_probability"] <= URGENT_THRESHOLD
            ),
            "watch": sum(1 for p in at_risk if p["churn_probability"] <= WARNING_THRESHOLD),
        },
    }
