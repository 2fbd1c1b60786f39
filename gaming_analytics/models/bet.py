"""Bet model."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from gaming_analytics.db.base import Base


class BetStatus(str, Enum):
    """Bet settlement status."""

    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    VOID = "void"


class Bet(Base):
    """Wager placed by a player.

    Written by the betting path; the analytics engine only reads it.
    A ``won`` bet always carries ``actual_win``.
    """

    __tablename__ = "bets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    tenant_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tenants.id"), nullable=True, index=True
    )
    stake: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_odds: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BetStatus.PENDING.value, index=True
    )
    potential_win: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    actual_win: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Bet(id={self.id}, user_id={self.user_id}, stake={self.stake}, status={self.status})>"
