"""Business CRUD for the operator dashboard."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from business_api.api.dependencies.security import get_repository
from business_api.repositories import BusinessRepository, RecordNotFoundError
from business_api.schemas.loyalty import BusinessCreate, BusinessResponse, BusinessUpdate


router = APIRouter(prefix="/businesses", tags=["businesses"])


@router.get("", response_model=List[BusinessResponse])
async def list_businesses(repository: BusinessRepository = Depends(get_repository)) -> List[BusinessResponse]:
    businesses = await repository.list_businesses()
    return [BusinessResponse.model_validate(business) for business in businesses]


@router.post("", response_model=BusinessResponse, status_code=status.HTTP_201_CREATED)
async def create_business(
    payload: BusinessCreate,
    repository: BusinessRepository = Depends(get_repository),
) -> BusinessResponse:
    business = await repository.create_business(name=payload.name, description=payload.description)
    logger.info("Business created", business_id=str(business.id))
    return BusinessResponse.model_validate(business)


@router.get("/{business_id}", response_model=BusinessResponse)
async def get_business(
    business_id: UUID,
    repository: BusinessRepository = Depends(get_repository),
) -> BusinessResponse:
    try:
        business = await repository.get_business(business_id)
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    return BusinessResponse.model_validate(business)


@router.patch("/{business_id}", response_model=BusinessResponse)
async def update_business(
    business_id: UUID,
    payload: BusinessUpdate,
    repository: BusinessRepository = Depends(get_repository),
) -> BusinessResponse:
    try:
        business = await repository.update_business(business_id, payload.model_dump(exclude_unset=True))
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    return BusinessResponse.model_validate(business)


@router.delete("/{business_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_business(
    business_id: UUID,
    repository: BusinessRepository = Depends(get_repository),
) -> Response:
    try:
        await repository.delete_business(business_id)
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    logger.info("Business deleted", business_id=str(business_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
