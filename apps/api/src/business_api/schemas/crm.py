from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# meta: schema: crm


class CrmFilterPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_coupon: bool | None = Field(None, alias="hasCoupon")
    has_visited: int | None = Field(None, alias="hasVisited", ge=1)
    min_stamp: int | None = Field(None, alias="minStamp", ge=0)


class CrmListRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)
    search: str | None = None
    sort_by: Literal["name", "stamp", "coupon", "lastVisit"] = Field("name", alias="sortBy")
    sort_order: Literal["asc", "desc"] = Field("asc", alias="sortOrder")
    filter: CrmFilterPayload | None = None
    business_id: UUID | None = Field(None, alias="businessId")


class CrmUserRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    email: str | None = None
    phone: str | None = None
    name: str | None = None
    surname: str | None = None
    birthday: str | None = None
    valid_stamps: int = Field(..., alias="validStamps")
    coupons_count: int = Field(..., alias="couponsCount")
    total_coupons: int = Field(..., alias="totalCoupons")
    last_visit: datetime | None = Field(None, alias="lastVisit")
    stamps_last_prize: int = Field(..., alias="stampsLastPrize")
    stamps_next_prize: int = Field(..., alias="stampsNextPrize")
    next_prize_name: str | None = Field(None, alias="nextPrizeName")


class CrmListResponse(BaseModel):
    message: str
    data: list[CrmUserRow]


class UserProgression(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    business_id: UUID = Field(..., alias="businessId")
    valid_stamps: int = Field(..., alias="validStamps")
    coupons_count: int = Field(..., alias="couponsCount")
    total_coupons: int = Field(..., alias="totalCoupons")
    last_visit: datetime | None = Field(None, alias="lastVisit")
    stamps_last_prize: int = Field(..., alias="stampsLastPrize")
    stamps_next_prize: int = Field(..., alias="stampsNextPrize")
    next_prize_name: str | None = Field(None, alias="nextPrizeName")


class UserProgressionResponse(BaseModel):
    message: str
    data: UserProgression


class WalletPassLink(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_id: str | None = Field(None, alias="objectId", max_length=255)


class WalletPassPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    linked: bool
    object_id: str | None = Field(None, alias="objectId")
    wallet_pass: dict | None = Field(None, alias="walletPass")


class WalletPassResponse(BaseModel):
    message: str
    data: WalletPassPayload
