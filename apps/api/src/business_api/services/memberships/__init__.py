from .counter_sync import MembershipCounterSync  # noqa: F401
