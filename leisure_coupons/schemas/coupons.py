# leisure_coupons/schemas/coupons.py
from __future__ import annotations

from datetime import date, datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CouponIssueRequest(BaseModel):
    # ids may arrive as numbers from older clients
    reservation_id: str | int | None = None
    customer_id: str | int | None = None
    payment_key: str | None = None


class IssuedCouponOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    coupon_code: str
    status: str
    qr_code_url: str = Field(validation_alias=AliasChoices("qr_data", "qr_code_url"))
    valid_from: date
    valid_until: date


class CouponIssueResponse(BaseModel):
    success: bool = True
    issued_coupons: list[IssuedCouponOut]
    message: str


class ScannedCouponOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    coupon_code: str
    customer_name: str
    customer_phone: str
    status: str
    valid_from: date
    valid_until: date
    message: str = "사용 가능한 쿠폰입니다"


class CouponScanResponse(BaseModel):
    success: bool = True
    coupon: ScannedCouponOut


class CouponUseRequest(BaseModel):
    partner_id: str | int | None = None
    staff_id: str | int | None = None
    staff_name: str | None = None


class UsedCouponOut(BaseModel):
    coupon_code: str
    status: str
    used_at: datetime | None
    used_by_staff: str | None
    message: str = "입장 처리가 완료되었습니다"


class CouponUseResponse(BaseModel):
    success: bool = True
    coupon: UsedCouponOut


class CouponCancelRequest(BaseModel):
    reason: str | None = None
    partner_id: str | int | None = None


class CancelledCouponOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    coupon_code: str
    status: str
    message: str = "쿠폰이 취소되었습니다"


class CouponCancelResponse(BaseModel):
    success: bool = True
    coupon: CancelledCouponOut


class CouponUsageLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    partner_id: str | None
    partner_name: str | None
    staff_id: str | None
    staff_name: str | None
    note: str | None
    created_at: datetime


class CouponUsageLogListResponse(BaseModel):
    success: bool = True
    coupon_code: str
    logs: list[CouponUsageLogOut]
