# leisure_coupons/services/catalog.py
"""Read-only access to reservations and leisure products owned by other subsystems."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leisure_coupons.core.config import settings
from leisure_coupons.core.db import store_call
from leisure_coupons.models.leisure_product import LeisureProduct
from leisure_coupons.models.reservation import Reservation


async def get_reservation(db: AsyncSession, reservation_id: str) -> Reservation | None:
    res = await store_call(db.execute(select(Reservation).where(Reservation.id == str(reservation_id))))
    return res.scalar_one_or_none()


async def list_eligible_products(db: AsyncSession, reservation_id: str) -> list[LeisureProduct]:
    # TODO: join through a reservation_products table once bookings record which products were bought
    stmt = (
        select(LeisureProduct)
        .where(LeisureProduct.partner_id.is_not(None))
        .order_by(LeisureProduct.id.asc())
        .limit(int(settings.ELIGIBLE_PRODUCT_LIMIT))
    )
    res = await store_call(db.execute(stmt))
    return list(res.scalars().all())
