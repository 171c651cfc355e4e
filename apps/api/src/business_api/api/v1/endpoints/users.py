"""CRM customer listing, per-customer progression and wallet-pass links."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from loguru import logger

from business_api.api.dependencies.security import get_repository, get_user_service_client, resolve_business_id
from business_api.core.errors import UserServiceError
from business_api.core.settings import settings
from business_api.repositories import BusinessRepository
from business_api.schemas.crm import (
    CrmListRequest,
    CrmListResponse,
    CrmUserRow,
    UserProgression,
    UserProgressionResponse,
    WalletPassLink,
    WalletPassPayload,
    WalletPassResponse,
)
from business_api.services.crm import CrmFilter, CrmListingService, CrmListQuery
from business_api.services.identity import UserServiceClient, WalletPass
from business_api.services.loyalty import PrizeCatalog, compute_progression


router = APIRouter(prefix="/users", tags=["users"])


def _wallet_pass_response(wallet_pass: WalletPass) -> WalletPassResponse:
    return WalletPassResponse(
        message="ok",
        data=WalletPassPayload(
            linked=wallet_pass.linked,
            object_id=wallet_pass.object_id,
            wallet_pass=dict(wallet_pass.wallet_pass) if wallet_pass.wallet_pass else None,
        ),
    )


@router.post("", response_model=CrmListResponse)
async def list_crm_users(
    payload: CrmListRequest,
    business_id: UUID | None = Query(None, alias="businessId"),
    header_business_id: UUID | None = Header(None, alias="X-Business-Id"),
    repository: BusinessRepository = Depends(get_repository),
    users: UserServiceClient = Depends(get_user_service_client),
) -> CrmListResponse:
    resolved_business_id = (
        payload.business_id or business_id or header_business_id or settings.default_business_id
    )
    if resolved_business_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="businessId required")

    filters = payload.filter
    query = CrmListQuery(
        business_id=resolved_business_id,
        page=payload.page,
        limit=min(payload.limit, settings.crm_max_page_size),
        search=payload.search,
        sort_by=payload.sort_by,
        sort_order=payload.sort_order,
        filter=CrmFilter(
            has_coupon=filters.has_coupon,
            has_visited_days=filters.has_visited,
            min_stamp=filters.min_stamp,
        )
        if filters
        else CrmFilter(),
    )
    service = CrmListingService(users=users, repository=repository, default_prize_step=settings.default_prize_step)
    try:
        rows = await service.list_users(query)
    except UserServiceError as error:
        logger.exception("CRM listing failed", business_id=str(resolved_business_id))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to fetch users") from error

    return CrmListResponse(
        message="Users retrieved successfully",
        data=[CrmUserRow.model_validate(row) for row in rows],
    )


@router.get("/{user_id}/progression", response_model=UserProgressionResponse)
async def get_user_progression(
    user_id: str,
    business_id: UUID = Depends(resolve_business_id),
    repository: BusinessRepository = Depends(get_repository),
) -> UserProgressionResponse:
    stats = await repository.get_user_stats_for_business(user_id, business_id)
    catalog = PrizeCatalog.from_prizes(await repository.list_prizes(business_id))
    progression = compute_progression(stats.valid_stamps, catalog, default_step=settings.default_prize_step)
    return UserProgressionResponse(
        message="ok",
        data=UserProgression(
            user_id=user_id,
            business_id=business_id,
            valid_stamps=stats.valid_stamps,
            coupons_count=stats.coupons_count,
            total_coupons=stats.total_coupons,
            last_visit=stats.last_visit,
            stamps_last_prize=progression.stamps_last_prize,
            stamps_next_prize=progression.stamps_next_prize,
            next_prize_name=progression.next_prize_name,
        ),
    )


@router.get("/{user_id}/wallet-pass", response_model=WalletPassResponse)
async def get_wallet_pass(
    user_id: str,
    business_id: UUID = Depends(resolve_business_id),
    users: UserServiceClient = Depends(get_user_service_client),
) -> WalletPassResponse:
    try:
        wallet_pass = await users.get_wallet_pass(user_id, business_id)
    except UserServiceError as error:
        logger.exception("Wallet pass lookup failed", user_id=user_id, business_id=str(business_id))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to fetch wallet pass") from error
    return _wallet_pass_response(wallet_pass)


@router.put("/{user_id}/wallet-pass", response_model=WalletPassResponse)
async def link_wallet_pass(
    user_id: str,
    payload: WalletPassLink,
    business_id: UUID = Depends(resolve_business_id),
    users: UserServiceClient = Depends(get_user_service_client),
) -> WalletPassResponse:
    try:
        wallet_pass = await users.upsert_wallet_pass(user_id, business_id, object_id=payload.object_id)
    except UserServiceError as error:
        logger.exception("Wallet pass link failed", user_id=user_id, business_id=str(business_id))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to link wallet pass") from error
    logger.info("Wallet pass linked", user_id=user_id, business_id=str(business_id))
    return _wallet_pass_response(wallet_pass)
