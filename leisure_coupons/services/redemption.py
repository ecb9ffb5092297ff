# leisure_coupons/services/redemption.py
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from leisure_coupons.core.config import settings
from leisure_coupons.core.db import store_call
from leisure_coupons.core.errors import (
    CouponAlreadyUsed,
    CouponCancelled,
    CouponExpired,
    CouponNotFound,
    Internal,
    InvalidInput,
    PartnerMismatch,
)
from leisure_coupons.models.coupon import OPEN_STATUSES, Coupon
from leisure_coupons.services import coupon_store, usage_log
from leisure_coupons.services.inputs import clean_text

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def service_today(now: datetime) -> date:
    # validity windows are calendar days at the venue
    return now.astimezone(ZoneInfo(settings.SERVICE_TIMEZONE)).date()


def check_redeemable(coupon: Coupon, partner_id: str | None, today: date) -> bool:
    """
    Raise for states that forbid any further use of the coupon.

    Returns True when the coupon is past its validity window (or already
    marked expired); the caller decides how to persist that.
    """
    if partner_id and coupon.partner_id != partner_id:
        raise PartnerMismatch()
    if coupon.status == "used":
        raise CouponAlreadyUsed(used_at=coupon.used_at)
    if coupon.status == "cancelled":
        raise CouponCancelled()
    return coupon.status == "expired" or today > coupon.valid_until


def _raise_for_state(coupon: Coupon | None):
    # called after a lost compare-and-swap: report what the winner left behind
    if coupon is None:
        raise CouponNotFound()
    if coupon.status == "used":
        raise CouponAlreadyUsed(used_at=coupon.used_at)
    if coupon.status == "cancelled":
        raise CouponCancelled()
    if coupon.status == "expired":
        raise CouponExpired(valid_until=coupon.valid_until)
    raise Internal()


async def _load(db: AsyncSession, coupon_code) -> Coupon:
    code = clean_text(coupon_code)
    if not code:
        raise CouponNotFound()
    coupon = await coupon_store.get_by_code(db, code)
    if coupon is None:
        raise CouponNotFound()
    return coupon


async def _expire(db: AsyncSession, coupon: Coupon, *, partner_id: str | None):
    if coupon.status != "expired":
        moved = await coupon_store.try_transition(db, coupon.id, OPEN_STATUSES, "expired")
        if moved is None:
            _raise_for_state(await coupon_store.get_by_id(db, coupon.id))

        usage_log.append(
            db,
            coupon_id=coupon.id,
            action="expired",
            partner_id=partner_id or coupon.partner_id,
        )
        await store_call(db.commit())
        logger.info("coupon.expire.ok code=%s valid_until=%s", coupon.coupon_code, coupon.valid_until)

    raise CouponExpired(valid_until=coupon.valid_until)


async def fetch_for_scan(
    db: AsyncSession,
    coupon_code: str,
    partner_id: str | None = None,
    now: datetime | None = None,
) -> Coupon:
    """
    Customer shows the coupon at the venue: validate it and move it to in_use.

    A scan after the validity window persists `expired` before reporting
    CouponExpired. Re-scanning an in_use coupon succeeds again without a new
    log entry.
    """
    now = now or _now_utc()
    partner_id = clean_text(partner_id)

    try:
        coupon = await _load(db, coupon_code)

        if check_redeemable(coupon, partner_id, service_today(now)):
            await _expire(db, coupon, partner_id=partner_id)

        moved = await coupon_store.try_transition(db, coupon.id, {"issued"}, "in_use")
        if moved is not None:
            usage_log.append(
                db,
                coupon_id=coupon.id,
                action="scanned",
                partner_id=partner_id or coupon.partner_id,
            )
        else:
            moved = await coupon_store.try_transition(db, coupon.id, {"in_use"}, "in_use")
            if moved is None:
                _raise_for_state(await coupon_store.get_by_id(db, coupon.id))

        await store_call(db.commit())

    except Exception:
        await store_call(db.rollback())
        raise

    logger.info("coupon.scan.ok code=%s partner_id=%s", moved.coupon_code, partner_id)
    return moved


async def redeem(
    db: AsyncSession,
    coupon_code: str,
    *,
    partner_id: str | None,
    staff_name: str | None,
    staff_id: str | None = None,
    now: datetime | None = None,
) -> Coupon:
    """
    Staff confirms entry: the coupon becomes `used` (terminal).

    Applies the same checks as a scan (partner, used, cancelled, validity),
    then a compare-and-swap from issued/in_use, so of two concurrent calls
    exactly one succeeds and the other gets CouponAlreadyUsed.
    """
    now = now or _now_utc()
    partner_id = clean_text(partner_id)
    staff_name = clean_text(staff_name)
    staff_id = clean_text(staff_id)
    if not partner_id or not staff_name:
        raise InvalidInput()

    try:
        coupon = await _load(db, coupon_code)

        if check_redeemable(coupon, partner_id, service_today(now)):
            await _expire(db, coupon, partner_id=partner_id)

        moved = await coupon_store.try_transition(
            db,
            coupon.id,
            OPEN_STATUSES,
            "used",
            used_at=now,
            used_by_partner_id=partner_id,
            used_by_staff_name=staff_name,
        )
        if moved is None:
            _raise_for_state(await coupon_store.get_by_id(db, coupon.id))

        usage_log.append(
            db,
            coupon_id=coupon.id,
            action="used",
            partner_id=partner_id,
            staff_id=staff_id,
            staff_name=staff_name,
        )
        await store_call(db.commit())

    except Exception:
        await store_call(db.rollback())
        raise

    logger.info("coupon.redeem.ok code=%s partner_id=%s staff=%s", moved.coupon_code, partner_id, staff_name)
    return moved


async def cancel_coupon(
    db: AsyncSession,
    coupon_code: str,
    *,
    reason: str | None = None,
    partner_id: str | None = None,
) -> Coupon:
    partner_id = clean_text(partner_id)

    try:
        coupon = await _load(db, coupon_code)
        if partner_id and coupon.partner_id != partner_id:
            raise PartnerMismatch()

        moved = await coupon_store.try_transition(db, coupon.id, OPEN_STATUSES, "cancelled")
        if moved is None:
            _raise_for_state(await coupon_store.get_by_id(db, coupon.id))

        usage_log.append(
            db,
            coupon_id=coupon.id,
            action="cancelled",
            partner_id=partner_id or coupon.partner_id,
            note=clean_text(reason),
        )
        await store_call(db.commit())

    except Exception:
        await store_call(db.rollback())
        raise

    logger.info("coupon.cancel.ok code=%s reason=%s", moved.coupon_code, clean_text(reason))
    return moved
