"""Business analytics exports."""

from .business_analytics import (  # noqa: F401
    AnalyticsOverview,
    AnalyticsService,
    CustomerCounter,
    DailySeries,
    LocalCustomerCounter,
    RemoteCustomerCounter,
    clamp_days,
    utc_midnight,
)
