# coffice/core/exceptions.py
"""
Domain-specific exceptions for the Coffice reservation engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input validation fails (malformed interval, bad participant count)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested record is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class ForbiddenException(DomainException):
    """Raised when the actor lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a reservation overlaps an existing live reservation."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        conflicting_reservation_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if conflicting_reservation_id:
            merged["conflicting_reservation_id"] = conflicting_reservation_id
        super().__init__(
            message=message or "This time slot conflicts with an existing reservation",
            code="BOOKING_CONFLICT",
            details=merged,
        )
        self.conflicting_reservation_id = conflicting_reservation_id


class ResourceBusyException(ConflictException):
    """Raised when the per-resource lock cannot be acquired in time."""

    def __init__(self, resource_id: str):
        super().__init__(
            message="This resource is being booked by another request, please retry",
            code="RESOURCE_BUSY",
            details={"resource_id": resource_id},
        )


class PromoInvalidException(DomainException):
    """
    Raised when a promo code cannot be applied.

    ``reason`` is machine-readable so the UI can explain the refusal:
    unknown, inactive, not_yet_valid, expired, exhausted, below_minimum,
    not_applicable, already_used.
    """

    status_code = HTTP_422_UNPROCESSABLE

    def __init__(self, code_value: str, reason: str, message: Optional[str] = None, **extra: Any):
        super().__init__(
            message=message or f"Promo code '{code_value}' cannot be applied ({reason})",
            code="PROMO_INVALID",
            details={"promo_code": code_value, "reason": reason, **extra},
        )
        self.reason = reason


class InvalidStateException(DomainException):
    """Raised on a lifecycle transition from a terminal or incompatible state."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reservation_id: str, current_status: str, target_status: str):
        super().__init__(
            message=(
                f"Reservation {reservation_id} cannot move from {current_status} to {target_status}"
            ),
            code="INVALID_STATE",
            details={
                "reservation_id": reservation_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )
        self.current_status = current_status
        self.target_status = target_status


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
