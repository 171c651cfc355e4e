"""Coupon issuance, redemption and listing."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from loguru import logger
from sqlalchemy.exc import IntegrityError

from business_api.api.dependencies.security import get_counter_sync, get_repository, resolve_business_id
from business_api.core.settings import settings
from business_api.models import Coupon
from business_api.repositories import BusinessRepository, RecordNotFoundError
from business_api.schemas.loyalty import (
    CouponCreate,
    CouponEnvelope,
    CouponListEnvelope,
    CouponPrizeSummary,
    CouponResponse,
)
from business_api.services.identity import MembershipCounterUpdate
from business_api.services.memberships import MembershipCounterSync


router = APIRouter(prefix="/coupons", tags=["coupons"])


def _serialize_coupon(coupon: Coupon, now: datetime) -> CouponResponse:
    return CouponResponse(
        id=coupon.id,
        user_id=coupon.user_id,
        business_id=coupon.business_id,
        prize_id=coupon.prize_id,
        code=coupon.code,
        is_redeemed=coupon.is_redeemed,
        is_valid=coupon.is_valid(now),
        created_at=coupon.created_at,
        expired_at=coupon.expired_at,
        redeemed_at=coupon.redeemed_at,
        prize=CouponPrizeSummary.model_validate(coupon.prize) if coupon.prize is not None else None,
    )


@router.post("", response_model=CouponEnvelope, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    payload: CouponCreate,
    background_tasks: BackgroundTasks,
    repository: BusinessRepository = Depends(get_repository),
    counter_sync: MembershipCounterSync = Depends(get_counter_sync),
) -> CouponEnvelope:
    now = datetime.now(timezone.utc)
    try:
        coupon = await repository.create_coupon(
            payload.user_id,
            payload.business_id,
            payload.prize_id,
            payload.code,
            now + timedelta(days=settings.coupon_expiry_days),
        )
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    except IntegrityError as error:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon code already issued") from error

    stats = await repository.get_user_stats_for_business(payload.user_id, payload.business_id, now)
    background_tasks.add_task(
        counter_sync.push,
        MembershipCounterUpdate(
            user_id=payload.user_id,
            business_id=payload.business_id,
            valid_stamps=stats.valid_stamps,
            valid_coupons=stats.coupons_count,
            total_coupons_delta=1,
        ),
    )
    logger.info(
        "Coupon issued",
        coupon_id=str(coupon.id),
        user_id=payload.user_id,
        business_id=str(payload.business_id),
        prize_id=str(payload.prize_id),
    )
    return CouponEnvelope(coupon=_serialize_coupon(coupon, now))


@router.patch("/{coupon_id}/redeem", response_model=CouponEnvelope)
async def redeem_coupon(
    coupon_id: UUID,
    background_tasks: BackgroundTasks,
    repository: BusinessRepository = Depends(get_repository),
    counter_sync: MembershipCounterSync = Depends(get_counter_sync),
) -> CouponEnvelope:
    now = datetime.now(timezone.utc)
    try:
        coupon = await repository.redeem_coupon(coupon_id, redeemed_at=now)
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error

    remaining = await repository.count_valid_coupons(coupon.user_id, coupon.business_id, now)
    background_tasks.add_task(
        counter_sync.push,
        MembershipCounterUpdate(user_id=coupon.user_id, business_id=coupon.business_id, valid_coupons=remaining),
    )
    logger.info("Coupon redeemed", coupon_id=str(coupon_id), remaining_valid_coupons=remaining)
    return CouponEnvelope(coupon=_serialize_coupon(coupon, now))


@router.get("", response_model=CouponListEnvelope)
async def list_coupons(
    user_id: str = Query(..., alias="userId", min_length=1),
    business_id: UUID = Depends(resolve_business_id),
    repository: BusinessRepository = Depends(get_repository),
) -> CouponListEnvelope:
    now = datetime.now(timezone.utc)
    coupons = await repository.list_coupons(user_id, business_id)
    return CouponListEnvelope(coupons=[_serialize_coupon(coupon, now) for coupon in coupons])
