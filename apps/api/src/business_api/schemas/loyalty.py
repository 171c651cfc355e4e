from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# meta: schema: loyalty-catalog


class BusinessResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")


class BusinessCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class BusinessUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class PrizeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    business_id: UUID = Field(..., alias="businessId")
    name: str
    description: str | None = None
    points_required: int = Field(..., alias="pointsRequired")
    created_at: datetime | None = Field(None, alias="createdAt")


class PrizeCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    business_id: UUID = Field(..., alias="businessId")
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    points_required: int = Field(..., alias="pointsRequired", gt=0)


class PrizeUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    points_required: int | None = Field(None, alias="pointsRequired", gt=0)


class StampIssueRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    business_id: UUID = Field(..., alias="businessId")
    quantity: int = Field(1, ge=1, le=50)


class StampResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    user_id: str = Field(..., alias="userId")
    business_id: UUID = Field(..., alias="businessId")
    created_at: datetime = Field(..., alias="createdAt")


class StampIssueResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stamps: list[StampResponse]
    valid_stamps: int = Field(..., alias="validStamps")


class StampListResponse(BaseModel):
    stamps: list[StampResponse]


class CouponCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    business_id: UUID = Field(..., alias="businessId")
    prize_id: UUID = Field(..., alias="prizeId")
    code: str = Field(..., min_length=1, max_length=64)


class CouponPrizeSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    name: str
    points_required: int = Field(..., alias="pointsRequired")


class CouponResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    user_id: str = Field(..., alias="userId")
    business_id: UUID = Field(..., alias="businessId")
    prize_id: UUID = Field(..., alias="prizeId")
    code: str
    is_redeemed: bool = Field(..., alias="isRedeemed")
    is_valid: bool = Field(..., alias="isValid")
    created_at: datetime = Field(..., alias="createdAt")
    expired_at: datetime | None = Field(None, alias="expiredAt")
    redeemed_at: datetime | None = Field(None, alias="redeemedAt")
    prize: CouponPrizeSummary | None = None


class CouponEnvelope(BaseModel):
    coupon: CouponResponse


class CouponListEnvelope(BaseModel):
    coupons: list[CouponResponse]
