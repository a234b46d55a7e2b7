# coffice/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream (API gateway); requests reach this service
with the authenticated user's id in the ``X-User-Id`` header.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...core.ulid_helper import is_valid_ulid
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id or not is_valid_ulid(x_user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or malformed X-User-Id header",
        )
    user = RepositoryFactory.create_base_repository(db, User).get_by_id(x_user_id)
    if user is None or not user.is_active:
        logger.warning("Rejected request for unknown or inactive user %s", x_user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user",
        )
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
