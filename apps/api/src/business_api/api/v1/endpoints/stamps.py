"""Stamp issuance (QR scans at the counter) and stamp history."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from loguru import logger

from business_api.api.dependencies.security import get_counter_sync, get_repository, resolve_business_id
from business_api.repositories import BusinessRepository, RecordNotFoundError
from business_api.schemas.loyalty import StampIssueRequest, StampIssueResponse, StampListResponse, StampResponse
from business_api.services.identity import MembershipCounterUpdate
from business_api.services.memberships import MembershipCounterSync


router = APIRouter(prefix="/stamps", tags=["stamps"])


@router.post("", response_model=StampIssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_stamps(
    payload: StampIssueRequest,
    background_tasks: BackgroundTasks,
    repository: BusinessRepository = Depends(get_repository),
    counter_sync: MembershipCounterSync = Depends(get_counter_sync),
) -> StampIssueResponse:
    try:
        stamps = await repository.add_stamps(payload.user_id, payload.business_id, quantity=payload.quantity)
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error

    stats = await repository.get_user_stats_for_business(payload.user_id, payload.business_id)
    background_tasks.add_task(
        counter_sync.push,
        MembershipCounterUpdate(
            user_id=payload.user_id,
            business_id=payload.business_id,
            valid_stamps=stats.valid_stamps,
            total_stamps_delta=payload.quantity,
        ),
    )
    logger.info(
        "Stamps issued",
        user_id=payload.user_id,
        business_id=str(payload.business_id),
        quantity=payload.quantity,
        valid_stamps=stats.valid_stamps,
    )
    return StampIssueResponse(
        stamps=[StampResponse.model_validate(stamp) for stamp in stamps],
        valid_stamps=stats.valid_stamps,
    )


@router.get("", response_model=StampListResponse)
async def list_stamps(
    user_id: str = Query(..., alias="userId", min_length=1),
    limit: int = Query(100, ge=1, le=500),
    business_id: UUID = Depends(resolve_business_id),
    repository: BusinessRepository = Depends(get_repository),
) -> StampListResponse:
    stamps = await repository.list_stamps(user_id, business_id, limit=limit)
    return StampListResponse(stamps=[StampResponse.model_validate(stamp) for stamp in stamps])
