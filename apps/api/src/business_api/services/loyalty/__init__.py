"""Loyalty progression exports."""

from .progression import DEFAULT_PRIZE_STEP, PrizeCatalog, Progression, compute_progression  # noqa: F401
