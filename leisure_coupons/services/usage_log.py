# leisure_coupons/services/usage_log.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leisure_coupons.core.db import store_call
from leisure_coupons.core.errors import CouponNotFound
from leisure_coupons.models.coupon import Coupon
from leisure_coupons.models.coupon_usage_log import USAGE_ACTIONS, CouponUsageLog


def append(
    db: AsyncSession,
    *,
    coupon_id: int,
    action: str,
    partner_id: str | None = None,
    partner_name: str | None = None,
    staff_id: str | None = None,
    staff_name: str | None = None,
    note: str | None = None,
) -> CouponUsageLog:
    # joins the caller's transaction; never flushed or committed here
    if action not in USAGE_ACTIONS:
        raise ValueError(f"unknown usage action: {action}")

    entry = CouponUsageLog(
        coupon_id=coupon_id,
        action=action,
        partner_id=partner_id,
        partner_name=partner_name,
        staff_id=staff_id,
        staff_name=staff_name,
        note=note,
    )
    db.add(entry)
    return entry


async def list_for_coupon(db: AsyncSession, coupon_code: str) -> list[CouponUsageLog]:
    res = await store_call(db.execute(select(Coupon.id).where(Coupon.coupon_code == coupon_code)))
    coupon_id = res.scalar_one_or_none()
    if coupon_id is None:
        raise CouponNotFound()

    stmt = (
        select(CouponUsageLog)
        .where(CouponUsageLog.coupon_id == coupon_id)
        .order_by(CouponUsageLog.created_at.asc(), CouponUsageLog.id.asc())
    )
    ev_res = await store_call(db.execute(stmt))
    return list(ev_res.scalars().all())
