# coffice/repositories/transaction_repository.py
"""Append-only access to the money ledger."""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.transaction import Transaction, TransactionStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TransactionRepository(BaseRepository[Transaction]):
    def __init__(self, db: Session):
        super().__init__(db, Transaction)
        self.logger = logging.getLogger(__name__)

    def append(
        self,
        *,
        user_id: str,
        amount: int,
        transaction_type: str,
        reservation_id: Optional[str] = None,
        enrollment_id: Optional[str] = None,
        status: str = TransactionStatus.PENDING.value,
        description: Optional[str] = None,
    ) -> Transaction:
        return self.create(
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            reservation_id=reservation_id,
            enrollment_id=enrollment_id,
            status=status,
            description=description,
        )

    def list_for_reservation(self, reservation_id: str) -> List[Transaction]:
        try:
            return cast(
                List[Transaction],
                self.db.query(Transaction)
                .filter(Transaction.reservation_id == reservation_id)
                .order_by(Transaction.created_at.asc(), Transaction.id.asc())
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list transactions for %s: %s", reservation_id, exc)
            raise RepositoryException("Failed to list transactions") from exc
