# coffice/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets service instances bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.availability_service import AvailabilityService
from ...services.promotion_ledger_service import PromotionLedgerService
from ...services.reservation_service import ReservationService
from ...services.resource_registry_service import ResourceRegistryService
from .database import get_db


def get_reservation_service(db: Session = Depends(get_db)) -> ReservationService:
    return ReservationService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_resource_registry_service(db: Session = Depends(get_db)) -> ResourceRegistryService:
    return ResourceRegistryService(db)


def get_promotion_ledger_service(db: Session = Depends(get_db)) -> PromotionLedgerService:
    return PromotionLedgerService(db)
