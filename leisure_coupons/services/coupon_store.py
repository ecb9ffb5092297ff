# leisure_coupons/services/coupon_store.py
from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leisure_coupons.core.db import store_call
from leisure_coupons.models.coupon import TERMINAL_STATUSES, Coupon

logger = logging.getLogger(__name__)


async def get_by_code(db: AsyncSession, coupon_code: str) -> Coupon | None:
    stmt = (
        select(Coupon)
        .where(Coupon.coupon_code == coupon_code)
        .execution_options(populate_existing=True)
    )
    res = await store_call(db.execute(stmt))
    return res.scalar_one_or_none()


async def get_by_id(db: AsyncSession, coupon_id: int) -> Coupon | None:
    return await store_call(db.get(Coupon, coupon_id, populate_existing=True))


async def try_transition(
    db: AsyncSession,
    coupon_id: int,
    expected_statuses: Iterable[str],
    new_status: str,
    **fields: Any,
) -> Coupon | None:
    """
    Compare-and-swap on coupons.status.

    Runs a single UPDATE guarded by `status IN expected_statuses`, so two
    concurrent callers can never both move the same coupon out of the same
    state. Returns the refreshed coupon when the row changed, else None.
    Does not commit; the caller owns the transaction.
    """
    expected = sorted(set(expected_statuses))
    if not expected:
        raise ValueError("expected_statuses must not be empty")
    if TERMINAL_STATUSES.intersection(expected):
        raise ValueError(f"terminal statuses cannot be left: {sorted(TERMINAL_STATUSES.intersection(expected))}")

    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon_id, Coupon.status.in_(expected))
        .values(status=new_status, **fields)
        .execution_options(synchronize_session=False)
    )
    res = await store_call(db.execute(stmt))
    if res.rowcount != 1:
        logger.info(
            "coupon_store.transition.miss coupon_id=%s expected=%s new=%s",
            coupon_id, ",".join(expected), new_status,
        )
        return None

    return await get_by_id(db, coupon_id)
