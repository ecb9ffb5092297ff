# leisure_coupons/routers/coupons.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leisure_coupons.core.db import get_db
from leisure_coupons.core.security import resolve_scanned_code
from leisure_coupons.schemas.coupons import (
    CancelledCouponOut,
    CouponCancelRequest,
    CouponCancelResponse,
    CouponIssueRequest,
    CouponIssueResponse,
    CouponScanResponse,
    CouponUsageLogListResponse,
    CouponUsageLogOut,
    CouponUseRequest,
    CouponUseResponse,
    IssuedCouponOut,
    ScannedCouponOut,
    UsedCouponOut,
)
from leisure_coupons.services.issuance import issue_coupons
from leisure_coupons.services.redemption import cancel_coupon, fetch_for_scan, redeem
from leisure_coupons.services.usage_log import list_for_coupon

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post("/issue", response_model=CouponIssueResponse)
async def issue(
    body: CouponIssueRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Issue every coupon for a paid reservation.

    Business failures answer 400 (bad input, unknown reservation, no
    products) or 401 (payment not completed); anything unexpected is 500.
    Two retryable infrastructure failures are reported separately: 502 when
    a QR image cannot be rendered and 503 when the datastore is unavailable.
    Nothing is persisted in either case.
    """
    created = await issue_coupons(
        db,
        reservation_id=body.reservation_id,
        customer_id=body.customer_id,
        payment_key=body.payment_key,
    )
    return CouponIssueResponse(
        issued_coupons=[IssuedCouponOut.model_validate(c) for c in created],
        message=f"쿠폰 {len(created)}개가 발급되었습니다",
    )


@router.get("/{coupon_code}", response_model=CouponScanResponse)
async def scan(
    coupon_code: str,
    partner_id: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    # scanners may submit the raw QR content (bare code or signed token)
    coupon = await fetch_for_scan(db, resolve_scanned_code(coupon_code), partner_id=partner_id)
    return CouponScanResponse(coupon=ScannedCouponOut.model_validate(coupon))


@router.post("/{coupon_code}/use", response_model=CouponUseResponse)
async def use(
    coupon_code: str,
    body: CouponUseRequest,
    db: AsyncSession = Depends(get_db),
):
    coupon = await redeem(
        db,
        resolve_scanned_code(coupon_code),
        partner_id=body.partner_id,
        staff_id=body.staff_id,
        staff_name=body.staff_name,
    )
    return CouponUseResponse(
        coupon=UsedCouponOut(
            coupon_code=coupon.coupon_code,
            status=coupon.status,
            used_at=coupon.used_at,
            used_by_staff=coupon.used_by_staff_name,
        )
    )


@router.post("/{coupon_code}/cancel", response_model=CouponCancelResponse)
async def cancel(
    coupon_code: str,
    body: CouponCancelRequest,
    db: AsyncSession = Depends(get_db),
):
    coupon = await cancel_coupon(
        db,
        resolve_scanned_code(coupon_code),
        reason=body.reason,
        partner_id=body.partner_id,
    )
    return CouponCancelResponse(coupon=CancelledCouponOut.model_validate(coupon))


@router.get("/{coupon_code}/logs", response_model=CouponUsageLogListResponse)
async def logs(
    coupon_code: str,
    db: AsyncSession = Depends(get_db),
):
    code = resolve_scanned_code(coupon_code)
    rows = await list_for_coupon(db, code)
    return CouponUsageLogListResponse(
        coupon_code=code,
        logs=[CouponUsageLogOut.model_validate(r) for r in rows],
    )
