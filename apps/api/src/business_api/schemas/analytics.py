from pydantic import BaseModel, ConfigDict, Field

# meta: schema: business-analytics


class AnalyticsOverviewPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    total_users: int = Field(..., alias="totalUsers")
    returnacy_rate: int = Field(..., alias="returnacyRate")
    total_coupons_redeemed: int = Field(..., alias="totalCouponsRedeemed")
    week_total_coupons_redeemed: int = Field(..., alias="weekTotalCouponsRedeemed")
    week_total_stamps: int = Field(..., alias="weekTotalStamps")
    week_new_users: int = Field(..., alias="weekNewUsers")
    month_total_stamps: int = Field(..., alias="monthTotalStamps")
    month_total_coupons_redeemed: int = Field(..., alias="monthTotalCouponsRedeemed")
    average_user_frequency: float = Field(..., alias="averageUserFrequency")


class AnalyticsOverviewResponse(BaseModel):
    message: str
    data: AnalyticsOverviewPayload


class DailyCountPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    count: int


class DailySeriesPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    daily_transactions: list[DailyCountPayload] = Field(..., alias="dailyTransactions")
    daily_stamps: list[DailyCountPayload] = Field(..., alias="dailyStamps")


class DailySeriesResponse(BaseModel):
    message: str
    data: DailySeriesPayload
