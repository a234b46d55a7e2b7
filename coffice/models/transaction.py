"""Append-only money ledger consumed by reporting."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from coffice.database import Base
from coffice.models.types import UTCDateTime, utc_now


class TransactionType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"
    CREDIT = "credit"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    reservation_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("reservations.id"), nullable=True, index=True
    )
    enrollment_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("subscription_enrollments.id"), nullable=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value
    )
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_transaction_amount_non_negative"),
        CheckConstraint(
            "transaction_type IN ('payment', 'refund', 'credit')", name="ck_transactions_type"
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_transactions_status"
        ),
        CheckConstraint(
            "reservation_id IS NOT NULL OR enrollment_id IS NOT NULL OR transaction_type = 'credit'",
            name="check_transaction_link",
        ),
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.id}: {self.transaction_type} {self.amount} {self.status}>"
