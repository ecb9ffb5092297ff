# leisure_coupons/models/coupon.py
from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    func,
)

from leisure_coupons.core.db import Base

# BIGSERIAL on Postgres, rowid alias on SQLite
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

COUPON_STATUSES = ("issued", "in_use", "used", "expired", "cancelled")
TERMINAL_STATUSES = frozenset({"used", "expired", "cancelled"})
OPEN_STATUSES = frozenset({"issued", "in_use"})


class Coupon(Base):
    __tablename__ = "coupons"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            "status IN ('issued','in_use','used','expired','cancelled')",
            name="coupons_status_check",
        ),
        CheckConstraint("length(coupon_code) = 9", name="coupon_code_length_chk"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    coupon_code = Column(Text, nullable=False, unique=True, index=True)

    reservation_id = Column(Text, ForeignKey("reservations.id"), nullable=False, index=True)
    customer_id = Column(Text, nullable=True)
    leisure_product_id = Column(Text, ForeignKey("leisure_products.id"), nullable=False)
    partner_id = Column(Text, nullable=False, index=True)

    qr_data = Column(Text, nullable=False)

    # snapshot taken at issuance
    customer_name = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False, server_default="")

    status = Column(Text, nullable=False, server_default="issued")

    valid_from = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=False)

    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by_partner_id = Column(Text, nullable=True)
    used_by_staff_name = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())
