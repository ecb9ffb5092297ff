# leisure_coupons/services/issuance.py
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leisure_coupons.core.db import store_call
from leisure_coupons.core.errors import (
    Internal,
    InvalidInput,
    NoProducts,
    PaymentNotCompleted,
    ReservationNotFound,
)
from leisure_coupons.models.coupon import Coupon
from leisure_coupons.models.leisure_product import LeisureProduct
from leisure_coupons.services import usage_log
from leisure_coupons.services.catalog import get_reservation, list_eligible_products
from leisure_coupons.services.coupon_codes import generate_unique_codes
from leisure_coupons.services.inputs import clean_text
from leisure_coupons.services.qr import build_qr_payload, render_many

logger = logging.getLogger(__name__)

PAYMENT_COMPLETED = "completed"
DEFAULT_CUSTOMER_NAME = "고객"


def _partner_name(product: LeisureProduct) -> str:
    partner = product.partner
    if partner is not None and partner.name:
        return partner.name
    return product.name


async def issue_coupons(
    db: AsyncSession,
    *,
    reservation_id,
    customer_id=None,
    payment_key=None,
) -> list[Coupon]:
    """
    Mint one coupon per (eligible product, covered person) for a paid reservation.

    Checks run fail-fast in this order: input, reservation exists, payment
    completed, products available. QR codes are rendered before any write;
    every coupon and its `issued` log entry then go in with a single commit,
    so a failure leaves nothing behind.
    """
    reservation_id = clean_text(reservation_id)
    payment_key = clean_text(payment_key)
    customer_id = clean_text(customer_id)
    if not reservation_id or not payment_key:
        raise InvalidInput()

    try:
        reservation = await get_reservation(db, reservation_id)
        if reservation is None:
            raise ReservationNotFound()

        if reservation.payment_status != PAYMENT_COMPLETED:
            raise PaymentNotCompleted()

        products = await list_eligible_products(db, reservation_id)
        if not products:
            raise NoProducts()

        units = [p for p in products for _ in range(int(reservation.num_people))]
        codes = await generate_unique_codes(db, len(units))
        qr_images = await render_many([build_qr_payload(c) for c in codes])

        created: list[Coupon] = []
        for product, code, qr_data in zip(units, codes, qr_images):
            c = Coupon(
                coupon_code=code,
                reservation_id=reservation.id,
                customer_id=customer_id,
                leisure_product_id=product.id,
                partner_id=product.partner_id,
                qr_data=qr_data,
                customer_name=reservation.customer_name or DEFAULT_CUSTOMER_NAME,
                customer_phone=reservation.customer_phone or "",
                status="issued",
                valid_from=reservation.check_in_date,
                valid_until=reservation.check_out_date,
            )
            db.add(c)
            created.append(c)

        # ids are needed for the log rows
        await store_call(db.flush())

        for c, product in zip(created, units):
            usage_log.append(
                db,
                coupon_id=c.id,
                action="issued",
                partner_id=product.partner_id,
                partner_name=_partner_name(product),
            )

        await store_call(db.commit())

    except IntegrityError as e:
        await store_call(db.rollback())
        logger.warning("coupon.issue.integrity_error reservation_id=%s", reservation_id)
        raise Internal() from e
    except Exception:
        await store_call(db.rollback())
        raise

    logger.info(
        "coupon.issue.ok reservation_id=%s products=%s people=%s count=%s",
        reservation_id, len(products), reservation.num_people, len(created),
    )
    return created
