"""Revenue and player analytics calculators.

Every calculator takes a ``RecordStore`` first and returns a plain
JSON-serializable dict (or list of dicts) with money rounded to cents.
"""

from gaming_analytics.services.analytics.agents import get_agent_profits
from gaming_analytics.services.analytics.churn import detect_churn, detect_churn_patterns, suggested_action
from gaming_analytics.services.analytics.ltv import calculate_player_ltv, segment_for_ltv
from gaming_analytics.services.analytics.players import get_player_list, get_player_metrics
from gaming_analytics.services.analytics.retention import calculate_retention
from gaming_analytics.services.analytics.revenue import calculate_ggr, calculate_ngr, get_product_split
from gaming_analytics.services.analytics.snapshot import (
    generate_snapshot,
    has_snapshot,
    list_snapshots,
    resolve_period,
)
from gaming_analytics.services.analytics.tenants import (
    get_ggr_by_tenant,
    get_ggr_trend_by_tenant,
    summarize_tenants,
)
from gaming_analytics.services.analytics.trends import get_financial_trends, get_turnover

__all__ = [
    "calculate_ggr",
    "calculate_ngr",
    "calculate_player_ltv",
    "calculate_retention",
    "detect_churn",
    "detect_churn_patterns",
    "generate_snapshot",
    "get_agent_profits",
    "get_financial_trends",
    "get_ggr_by_tenant",
    "get_ggr_trend_by_tenant",
    "get_player_list",
    "get_player_metrics",
    "get_product_split",
    "get_turnover",
    "has_snapshot",
    "list_snapshots",
    "resolve_period",
    "segment_for_ltv",
    "suggested_action",
    "summarize_tenants",
]
