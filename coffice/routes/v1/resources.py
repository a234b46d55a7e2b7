# coffice/routes/v1/resources.py
"""
Resource registry routes - API v1

Endpoints:
    GET / - List bookable resources
    POST / - Create a resource (admin)
    GET /{resource_id} - Resource details
    PATCH /{resource_id} - Update a resource (admin)
    DELETE /{resource_id} - Retire a resource (admin)
    GET /{resource_id}/availability - Availability and busy intervals for a window
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import (
    get_availability_service,
    get_resource_registry_service,
    require_admin,
)
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.resource import (
    AvailabilityResponse,
    BusyInterval,
    ResourceCreate,
    ResourceResponse,
    ResourceUpdate,
)
from ...services.availability_service import AvailabilityService
from ...services.resource_registry_service import ResourceRegistryService
from .reservations import handle_domain_exception

router = APIRouter(tags=["resources-v1"])


@router.get("", response_model=List[ResourceResponse])
def list_resources(
    resource_type: Optional[str] = Query(None),
    service: ResourceRegistryService = Depends(get_resource_registry_service),
) -> List[ResourceResponse]:
    return [ResourceResponse.model_validate(r) for r in service.list_resources(resource_type)]


@router.post("", response_model=ResourceResponse, status_code=201)
def create_resource(
    payload: ResourceCreate,
    _admin: User = Depends(require_admin),
    service: ResourceRegistryService = Depends(get_resource_registry_service),
) -> ResourceResponse:
    try:
        resource = service.create_resource(**payload.model_dump())
    except DomainException as exc:
        handle_domain_exception(exc)
    return ResourceResponse.model_validate(resource)


@router.get("/{resource_id}", response_model=ResourceResponse)
def get_resource(
    resource_id: str,
    service: ResourceRegistryService = Depends(get_resource_registry_service),
) -> ResourceResponse:
    try:
        resource = service.get_resource(resource_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return ResourceResponse.model_validate(resource)


@router.patch("/{resource_id}", response_model=ResourceResponse)
def update_resource(
    resource_id: str,
    payload: ResourceUpdate,
    _admin: User = Depends(require_admin),
    service: ResourceRegistryService = Depends(get_resource_registry_service),
) -> ResourceResponse:
    try:
        resource = service.update_resource(resource_id, **payload.model_dump(exclude_unset=True))
    except DomainException as exc:
        handle_domain_exception(exc)
    return ResourceResponse.model_validate(resource)


@router.delete("/{resource_id}", response_model=ResourceResponse)
def deactivate_resource(
    resource_id: str,
    _admin: User = Depends(require_admin),
    service: ResourceRegistryService = Depends(get_resource_registry_service),
) -> ResourceResponse:
    try:
        resource = service.deactivate_resource(resource_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return ResourceResponse.model_validate(resource)


@router.get("/{resource_id}/availability", response_model=AvailabilityResponse)
def get_availability(
    resource_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        result = service.check_availability(resource_id, start, end, allow_past=True)
        busy = service.list_busy_intervals(resource_id, start, end)
    except DomainException as exc:
        handle_domain_exception(exc)
    return AvailabilityResponse(
        resource_id=resource_id,
        start_at=start,
        end_at=end,
        available=result.available,
        conflicting_reservation_id=result.conflicting_reservation_id,
        reason=result.reason,
        busy=[
            BusyInterval(start_at=busy_start, end_at=busy_end, reservation_id=reservation_id)
            for busy_start, busy_end, reservation_id in busy
        ],
    )
