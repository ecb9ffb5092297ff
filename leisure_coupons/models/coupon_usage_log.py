# leisure_coupons/models/coupon_usage_log.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from leisure_coupons.core.db import Base

USAGE_ACTIONS = ("issued", "scanned", "used", "expired", "cancelled")


class CouponUsageLog(Base):
    """Append-only audit row, one per coupon lifecycle transition."""

    __tablename__ = "coupon_usage_logs"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            "action IN ('issued','scanned','used','expired','cancelled')",
            name="coupon_usage_logs_action_check",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)

    coupon_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("coupons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    action: Mapped[str] = mapped_column(Text, nullable=False)

    partner_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    partner_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    staff_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    staff_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
