# coffice/repositories/factory.py
"""
Repository Factory for Coffice

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .event_outbox_repository import EventOutboxRepository
    from .promo_code_repository import PromoCodeRepository
    from .referral_credit_repository import ReferralCreditRepository
    from .reservation_repository import ReservationRepository
    from .resource_repository import ResourceRepository
    from .subscription_repository import SubscriptionRepository
    from .transaction_repository import TransactionRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services never construct
    repositories directly and tests can patch a single seam.
    """

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_resource_repository(db: Session) -> "ResourceRepository":
        """Create repository for the resource registry."""
        from .resource_repository import ResourceRepository

        return ResourceRepository(db)

    @staticmethod
    def create_reservation_repository(db: Session) -> "ReservationRepository":
        """Create repository for reservation queries and status CAS."""
        from .reservation_repository import ReservationRepository

        return ReservationRepository(db)

    @staticmethod
    def create_promo_code_repository(db: Session) -> "PromoCodeRepository":
        from .promo_code_repository import PromoCodeRepository

        return PromoCodeRepository(db)

    @staticmethod
    def create_subscription_repository(db: Session) -> "SubscriptionRepository":
        from .subscription_repository import SubscriptionRepository

        return SubscriptionRepository(db)

    @staticmethod
    def create_referral_credit_repository(db: Session) -> "ReferralCreditRepository":
        from .referral_credit_repository import ReferralCreditRepository

        return ReferralCreditRepository(db)

    @staticmethod
    def create_transaction_repository(db: Session) -> "TransactionRepository":
        from .transaction_repository import TransactionRepository

        return TransactionRepository(db)

    @staticmethod
    def create_event_outbox_repository(db: Session) -> "EventOutboxRepository":
        """Create repository for the reservation event outbox."""
        from .event_outbox_repository import EventOutboxRepository

        return EventOutboxRepository(db)
