"""SQLAlchemy models."""

from gaming_analytics.models.analytics_snapshot import (
    AnalyticsSnapshot,
    SnapshotImmutableError,
    SnapshotSource,
    SnapshotStatus,
    SnapshotType,
)
from gaming_analytics.models.bet import Bet, BetStatus
from gaming_analytics.models.tenant import Tenant, TenantStatus
from gaming_analytics.models.transaction import (
    BONUS_TYPES,
    GATEWAY_TYPES,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from gaming_analytics.models.user import User, UserRole, UserStatus

__all__ = [
    "BONUS_TYPES",
    "GATEWAY_TYPES",
    "AnalyticsSnapshot",
    "Bet",
    "BetStatus",
    "SnapshotImmutableError",
    "SnapshotSource",
    "SnapshotStatus",
    "SnapshotType",
    "Tenant",
    "TenantStatus",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserRole",
    "UserStatus",
]
