from .business_repository import (  # noqa: F401
    BusinessRepository,
    DailyCount,
    PrizeInUseError,
    RecordNotFoundError,
    UserBusinessStats,
)
