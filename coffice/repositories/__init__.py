# coffice/repositories/__init__.py
"""
Repository Pattern Implementation for Coffice

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Shared lookup, create and existence checks
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- ReservationRepository: Conflict queries and compare-and-set status updates
- PromoCodeRepository: Atomic compare-and-increment redemption

Usage:
    from coffice.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_reservation_repository(db)
    conflicts = repository.find_conflicts(resource_id, start, end)
"""

from .base_repository import BaseRepository, IRepository
from .event_outbox_repository import EventOutboxRepository
from .factory import RepositoryFactory
from .promo_code_repository import PromoCodeRepository
from .referral_credit_repository import ReferralCreditRepository
from .reservation_repository import ReservationRepository
from .resource_repository import ResourceRepository
from .subscription_repository import SubscriptionRepository
from .transaction_repository import TransactionRepository

__all__ = [
    "BaseRepository",
    "IRepository",
    "RepositoryFactory",
    "EventOutboxRepository",
    "PromoCodeRepository",
    "ReferralCreditRepository",
    "ReservationRepository",
    "ResourceRepository",
    "SubscriptionRepository",
    "TransactionRepository",
]
