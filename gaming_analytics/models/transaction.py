"""Wallet transaction model."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from gaming_analytics.db.base import Base


class TransactionType(str, Enum):
    """Transaction type."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    BONUS = "bonus"
    BONUS_CREDIT = "bonus_credit"
    FREE_BET = "free_bet"
    CASHBACK = "cashback"
    BET = "bet"
    WIN = "win"
    ADJUSTMENT = "adjustment"


class TransactionStatus(str, Enum):
    """Transaction status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# Transaction types that count as bonus cost to the operator
BONUS_TYPES: tuple[str, ...] = (
    TransactionType.BONUS.value,
    TransactionType.BONUS_CREDIT.value,
    TransactionType.FREE_BET.value,
    TransactionType.CASHBACK.value,
)

# Transaction types routed through a payment gateway
GATEWAY_TYPES: tuple[str, ...] = (
    TransactionType.DEPOSIT.value,
    TransactionType.WITHDRAWAL.value,
)


class Transaction(Base):
    """Append-only wallet movement. Only completed rows count in aggregates."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    tenant_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tenants.id"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, type={self.type}, "
            f"amount={self.amount}, status={self.status})>"
        )
