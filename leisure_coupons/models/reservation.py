# leisure_coupons/models/reservation.py
# Owned by the booking subsystem; the coupon core only reads these rows.
from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from leisure_coupons.core.db import Base


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("num_people > 0", name="reservations_num_people_check"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=lambda: str(uuid4()))

    payment_status: Mapped[str] = mapped_column(Text, nullable=False, server_default="pending")
    num_people: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    customer_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
