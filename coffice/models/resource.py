# coffice/models/resource.py
"""
Bookable resource model.

A resource is a physical unit (open desk, private booth, meeting room) with
its own capacity and price list. Resources are never hard-deleted while
reservations reference them; ``available`` hides a resource from new
bookings and ``is_active`` retires it.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, Text
import ulid

from coffice.database import Base
from coffice.models.types import UTCDateTime, utc_now


class ResourceType(str, Enum):
    OPEN_DESK = "open_desk"
    BOOTH = "booth"
    MEETING_ROOM = "meeting_room"


class Resource(Base):
    __tablename__ = "resources"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False)
    resource_type = Column(String(20), nullable=False, index=True)
    capacity = Column(Integer, nullable=False, default=1)
    description = Column(Text, nullable=True)

    # Price list, whole currency units
    hourly_rate = Column(Integer, nullable=False)
    daily_rate = Column(Integer, nullable=True)
    weekly_rate = Column(Integer, nullable=True)
    monthly_rate = Column(Integer, nullable=True)

    available = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint(
            "resource_type IN ('open_desk', 'booth', 'meeting_room')",
            name="ck_resources_type",
        ),
        CheckConstraint("capacity >= 1", name="check_capacity_positive"),
        CheckConstraint("hourly_rate >= 0", name="check_hourly_rate_non_negative"),
        CheckConstraint("daily_rate IS NULL OR daily_rate >= 0", name="check_daily_rate"),
        CheckConstraint("weekly_rate IS NULL OR weekly_rate >= 0", name="check_weekly_rate"),
        CheckConstraint("monthly_rate IS NULL OR monthly_rate >= 0", name="check_monthly_rate"),
    )

    @property
    def is_bookable(self) -> bool:
        return bool(self.available and self.is_active)

    def rate_for(self, tier: str) -> Optional[int]:
        """Return the configured rate for ``tier`` (hourly/daily/weekly/monthly)."""
        return getattr(self, f"{tier}_rate", None)

    def __repr__(self) -> str:
        return f"<Resource {self.id}: {self.name} ({self.resource_type}) cap={self.capacity}>"
