"""Prize catalog management; thresholds drive customer progression."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from business_api.api.dependencies.security import get_repository, resolve_business_id
from business_api.repositories import BusinessRepository, PrizeInUseError, RecordNotFoundError
from business_api.schemas.loyalty import PrizeCreate, PrizeResponse, PrizeUpdate


router = APIRouter(prefix="/prizes", tags=["prizes"])


@router.get("", response_model=List[PrizeResponse])
async def list_prizes(
    business_id: UUID = Depends(resolve_business_id),
    repository: BusinessRepository = Depends(get_repository),
) -> List[PrizeResponse]:
    prizes = await repository.list_prizes(business_id)
    return [PrizeResponse.model_validate(prize) for prize in prizes]


@router.post("", response_model=PrizeResponse, status_code=status.HTTP_201_CREATED)
async def create_prize(
    payload: PrizeCreate,
    repository: BusinessRepository = Depends(get_repository),
) -> PrizeResponse:
    try:
        prize = await repository.create_prize(
            business_id=payload.business_id,
            name=payload.name,
            points_required=payload.points_required,
            description=payload.description,
        )
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    logger.info(
        "Prize created",
        prize_id=str(prize.id),
        business_id=str(payload.business_id),
        points_required=payload.points_required,
    )
    return PrizeResponse.model_validate(prize)


@router.patch("/{prize_id}", response_model=PrizeResponse)
async def update_prize(
    prize_id: UUID,
    payload: PrizeUpdate,
    repository: BusinessRepository = Depends(get_repository),
) -> PrizeResponse:
    try:
        prize = await repository.update_prize(prize_id, payload.model_dump(exclude_unset=True))
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    return PrizeResponse.model_validate(prize)


@router.delete("/{prize_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_prize(
    prize_id: UUID,
    repository: BusinessRepository = Depends(get_repository),
) -> Response:
    try:
        await repository.delete_prize(prize_id)
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    except PrizeInUseError as error:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error)) from error
    return Response(status_code=status.HTTP_204_NO_CONTENT)
