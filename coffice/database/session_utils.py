"""
Helpers for working with SQLAlchemy sessions in a dialect-agnostic way.
"""

from __future__ import annotations

from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Return the SQLAlchemy dialect name of the engine bound to ``session``."""
    bind = session.get_bind()
    if bind is None:
        return default
    return bind.dialect.name or default


def supports_row_locks(session: Session) -> bool:
    """True when ``SELECT ... FOR UPDATE`` is meaningful on this backend."""
    return get_dialect_name(session) == "postgresql"
