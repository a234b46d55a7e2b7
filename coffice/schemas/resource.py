"""Resource registry schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AwareDatetime, ConfigDict, Field

from ._strict_base import StrictModel, StrictRequestModel

ResourceTypeLiteral = Literal["open_desk", "booth", "meeting_room"]


class ResourceBase(StrictModel):
    name: str = Field(..., min_length=1, max_length=100)
    resource_type: ResourceTypeLiteral
    capacity: int = Field(1, ge=1)
    description: Optional[str] = Field(None, max_length=2000)
    hourly_rate: int = Field(..., ge=0, description="Price per started hour")
    daily_rate: Optional[int] = Field(None, ge=0)
    weekly_rate: Optional[int] = Field(None, ge=0)
    monthly_rate: Optional[int] = Field(None, ge=0)


class ResourceCreate(StrictRequestModel, ResourceBase):
    available: bool = True


class ResourceUpdate(StrictRequestModel):
    """Partial update; only provided fields are applied."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    resource_type: Optional[ResourceTypeLiteral] = None
    capacity: Optional[int] = Field(None, ge=1)
    description: Optional[str] = Field(None, max_length=2000)
    hourly_rate: Optional[int] = Field(None, ge=0)
    daily_rate: Optional[int] = Field(None, ge=0)
    weekly_rate: Optional[int] = Field(None, ge=0)
    monthly_rate: Optional[int] = Field(None, ge=0)
    available: Optional[bool] = None


class ResourceResponse(ResourceBase):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    available: bool
    is_active: bool
    created_at: datetime


class BusyInterval(StrictModel):
    start_at: datetime
    end_at: datetime
    reservation_id: str


class AvailabilityResponse(StrictModel):
    resource_id: str
    start_at: AwareDatetime
    end_at: AwareDatetime
    available: bool
    conflicting_reservation_id: Optional[str] = None
    reason: Optional[str] = None
    busy: List[BusyInterval] = Field(default_factory=list)
