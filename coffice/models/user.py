# coffice/models/user.py
"""
Minimal user record.

Accounts are managed by the surrounding application; the reservation engine
only needs ownership and the admin flag for confirm/cancel permissions.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from coffice.database import Base
from coffice.models.types import UTCDateTime, utc_now


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    referral_code: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} admin={self.is_admin}>"
