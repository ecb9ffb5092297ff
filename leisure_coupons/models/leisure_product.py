# leisure_coupons/models/leisure_product.py
# Catalog rows owned by partner onboarding; read-only to the coupon core.
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Text, func
from sqlalchemy.orm import relationship

from leisure_coupons.core.db import Base


class Partner(Base):
    __tablename__ = "partners"

    id = Column(Text, primary_key=True, default=lambda: str(uuid4()))
    name = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LeisureProduct(Base):
    __tablename__ = "leisure_products"

    id = Column(Text, primary_key=True, default=lambda: str(uuid4()))
    partner_id = Column(Text, ForeignKey("partners.id"), nullable=True, index=True)
    name = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    partner = relationship("Partner", lazy="selectin")
