"""User model (players, agents and staff share one table)."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from gaming_analytics.db.base import Base


class UserRole(str, Enum):
    """User role."""

    PLAYER = "player"
    AGENT = "agent"
    SUB_AGENT = "sub_agent"
    TENANT_ADMIN = "tenant_admin"
    SUPER_ADMIN = "super_admin"


class UserStatus(str, Enum):
    """Account status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    BLOCKED = "blocked"
    CLOSED = "closed"


class User(Base):
    """Platform account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tenants.id"), nullable=True, index=True
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.PLAYER.value, index=True
    )
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserStatus.ACTIVE.value
    )

    # Agent hierarchy
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"), comment="Agent commission, percent of GGR"
    )
    parent_agent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )
    sub_agent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )

    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )

    @property
    def display_name(self) -> str | None:
        return self.full_name or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role}, tenant_id={self.tenant_id})>"
