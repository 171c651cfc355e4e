"""Dashboard metrics for a single business."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from business_api.api.dependencies.security import (
    get_http_client,
    get_repository,
    get_token_service,
    resolve_business_id,
)
from business_api.core.errors import UserServiceError
from business_api.core.settings import settings
from business_api.repositories import BusinessRepository
from business_api.schemas.analytics import (
    AnalyticsOverviewPayload,
    AnalyticsOverviewResponse,
    DailyCountPayload,
    DailySeriesPayload,
    DailySeriesResponse,
)
from business_api.services.analytics import (
    AnalyticsService,
    CustomerCounter,
    LocalCustomerCounter,
    RemoteCustomerCounter,
    clamp_days,
)
from business_api.services.identity import UserServiceClient


router = APIRouter(prefix="/analytics", tags=["analytics"])


async def get_customer_counter(
    request: Request,
    repository: BusinessRepository = Depends(get_repository),
) -> CustomerCounter:
    """Total customers come from the user-service unless configured to count locally."""

    if settings.analytics_customer_count_source == "local":
        return LocalCustomerCounter(repository)
    http_client = get_http_client(request)
    users = UserServiceClient(
        base_url=settings.user_service_url,
        http_client=http_client,
        token_provider=get_token_service(request, http_client),
    )
    return RemoteCustomerCounter(users, limit=settings.analytics_remote_customer_limit)


def get_analytics_service(
    repository: BusinessRepository = Depends(get_repository),
    customer_counter: CustomerCounter = Depends(get_customer_counter),
) -> AnalyticsService:
    return AnalyticsService(repository, customer_counter)


@router.get("", response_model=AnalyticsOverviewResponse)
async def get_analytics_overview(
    business_id: UUID = Depends(resolve_business_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsOverviewResponse:
    try:
        overview = await service.compute_overview(business_id)
    except UserServiceError as error:
        logger.exception("Analytics customer count failed", business_id=str(business_id))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to fetch analytics") from error
    except SQLAlchemyError as error:
        logger.exception("Analytics aggregation failed", business_id=str(business_id))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch analytics") from error

    return AnalyticsOverviewResponse(message="ok", data=AnalyticsOverviewPayload.model_validate(overview))


@router.get("/daily-transactions", response_model=DailySeriesResponse)
async def get_daily_transactions(
    days: str | None = Query(None, description="Window length in days, clamped to 1..90"),
    business_id: UUID = Depends(resolve_business_id),
    repository: BusinessRepository = Depends(get_repository),
) -> DailySeriesResponse:
    # The customer counter is not needed for the series; skip the user-service wiring.
    service = AnalyticsService(repository, LocalCustomerCounter(repository))
    try:
        series = await service.compute_daily_series(business_id, clamp_days(days))
    except SQLAlchemyError as error:
        logger.exception("Daily series aggregation failed", business_id=str(business_id))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch daily transactions",
        ) from error

    return DailySeriesResponse(
        message="ok",
        data=DailySeriesPayload(
            daily_transactions=[DailyCountPayload(**item.as_dict()) for item in series.daily_transactions],
            daily_stamps=[DailyCountPayload(**item.as_dict()) for item in series.daily_stamps],
        ),
    )
