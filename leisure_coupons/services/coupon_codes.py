# leisure_coupons/services/coupon_codes.py
from __future__ import annotations

import logging
import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leisure_coupons.core.config import settings
from leisure_coupons.core.db import store_call
from leisure_coupons.core.errors import Internal
from leisure_coupons.models.coupon import Coupon

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 9


def generate_coupon_code() -> str:
    """9 characters drawn uniformly from A-Z0-9 (e.g. ABC123XYZ)."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


async def generate_unique_codes(db: AsyncSession, count: int) -> list[str]:
    """
    Draw `count` codes that are distinct from each other and not yet stored.

    Collisions are redrawn for up to COUPON_CODE_MAX_ATTEMPTS rounds. The
    unique index on coupons.coupon_code still guards inserts that race us.
    """
    if count <= 0:
        return []

    codes: set[str] = set()
    for attempt in range(settings.COUPON_CODE_MAX_ATTEMPTS):
        while len(codes) < count:
            codes.add(generate_coupon_code())

        res = await store_call(
            db.execute(select(Coupon.coupon_code).where(Coupon.coupon_code.in_(codes)))
        )
        taken = set(res.scalars().all())
        if not taken:
            return list(codes)

        logger.info("coupon_codes.collision attempt=%s taken=%s", attempt + 1, len(taken))
        codes -= taken

    raise Internal("쿠폰 코드를 생성하지 못했습니다")
