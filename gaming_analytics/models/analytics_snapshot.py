"""Write-once analytics snapshot model."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Uuid, event
from sqlalchemy.orm import Mapped, Mapper, mapped_column

from gaming_analytics.db.base import Base


class SnapshotType(str, Enum):
    """Snapshot period type."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class SnapshotStatus(str, Enum):
    """Snapshot status. Only complete snapshots are ever persisted."""

    COMPLETED = "completed"


class SnapshotSource(str, Enum):
    """Who asked for the snapshot."""

    SYSTEM = "system"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class SnapshotImmutableError(RuntimeError):
    """Raised when something tries to change or remove a persisted snapshot."""


def _utc_iso(value: datetime) -> str:
    # Some backends hand timestamps back naive; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


class AnalyticsSnapshot(Base):
    """Point-in-time rollup of revenue, betting, player, financial and agent metrics.

    One row per generation run. Rows are never updated or deleted; a re-run
    for the same period inserts a new row.
    """

    __tablename__ = "analytics_snapshots"
    __table_args__ = (
        Index("ix_analytics_snapshots_type_period", "type", "period_start"),
        Index("ix_analytics_snapshots_tenant_type_period", "tenant_id", "type", "period_start"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True, comment="Null for platform-wide snapshots"
    )

    # Metric sections
    revenue: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    betting: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    players: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    financial: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    agents: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    # Generation metadata
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SnapshotStatus.COMPLETED.value
    )
    generated_by: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SnapshotSource.SYSTEM.value
    )
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        return {
            "id": str(self.id),
            "type": self.type,
            "period_start": _utc_iso(self.period_start),
            "period_end": _utc_iso(self.period_end),
            "tenant_id": self.tenant_id,
            "revenue": self.revenue,
            "betting": self.betting,
            "players": self.players,
            "financial": self.financial,
            "agents": self.agents,
            "status": self.status,
            "generated_by": self.generated_by,
            "generated_at": _utc_iso(self.generated_at),
        }

    def __repr__(self) -> str:
        return (
            f"<AnalyticsSnapshot(id={self.id}, type={self.type}, "
            f"period_start={self.period_start}, tenant_id={self.tenant_id})>"
        )


@event.listens_for(AnalyticsSnapshot, "before_update")
def _reject_snapshot_update(_mapper: Mapper[Any], _connection: Any, target: AnalyticsSnapshot) -> None:
    raise SnapshotImmutableError(f"Analytics snapshot {target.id} is write-once")


@event.listens_for(AnalyticsSnapshot, "before_delete")
def _reject_snapshot_delete(_mapper: Mapper[Any], _connection: Any, target: AnalyticsSnapshot) -> None:
    raise SnapshotImmutableError(f"Analytics snapshot {target.id} cannot be deleted")
