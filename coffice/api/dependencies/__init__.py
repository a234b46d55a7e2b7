# coffice/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_user, require_admin
from .database import get_db
from .services import (
    get_availability_service,
    get_promotion_ledger_service,
    get_reservation_service,
    get_resource_registry_service,
)

__all__ = [
    # Auth
    "get_current_user",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_promotion_ledger_service",
    "get_reservation_service",
    "get_resource_registry_service",
]
