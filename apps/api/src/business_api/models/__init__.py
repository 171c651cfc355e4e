"""SQLAlchemy models package."""

from .business import Business, Prize  # noqa: F401
from .coupon import Coupon  # noqa: F401
from .stamp import Stamp  # noqa: F401

__all__ = ["Business", "Coupon", "Prize", "Stamp"]
