# coffice/routes/v1/__init__.py
"""Version 1 API routers."""

from . import promo_codes, reservations, resources

__all__ = ["promo_codes", "reservations", "resources"]
