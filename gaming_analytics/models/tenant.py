"""Tenant (white-label operator) model."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from gaming_analytics.db.base import Base, TimestampMixin


class TenantStatus(str, Enum):
    """Tenant lifecycle status."""

    ACTIVE = "active"
    TRIAL = "trial"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class Tenant(Base, TimestampMixin):
    """Operator brand running on the platform.

    Revenue is split between the platform provider and the tenant by
    ``provider_percentage``; the tenant keeps the complement.
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    brand_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Display name from the tenant theme"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TenantStatus.ACTIVE.value, index=True
    )

    # Revenue share
    provider_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True, comment="Provider share of GGR, 0-100"
    )
    tenant_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True, comment="Tenant share of GGR, 0-100"
    )

    @property
    def display_name(self) -> str:
        return self.brand_name or self.name

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name}, status={self.status})>"
