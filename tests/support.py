import tempfile
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import leisure_coupons.models  # noqa: F401
from leisure_coupons.core.db import Base
from leisure_coupons.models.coupon import Coupon
from leisure_coupons.models.coupon_usage_log import CouponUsageLog
from leisure_coupons.models.leisure_product import LeisureProduct, Partner
from leisure_coupons.models.reservation import Reservation

CHECK_IN = date(2026, 7, 1)
CHECK_OUT = date(2026, 7, 3)

# 12:00 in Asia/Seoul on the second day of the stay
NOW_DURING_STAY = datetime(2026, 7, 2, 3, 0, tzinfo=timezone.utc)
# 12:00 in Asia/Seoul the day after check-out
NOW_AFTER_STAY = datetime(2026, 7, 4, 3, 0, tzinfo=timezone.utc)


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        db_path = Path(self.tmp_dir.name) / "coupons.db"
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.sessions = async_sessionmaker(self.engine, expire_on_commit=False, autoflush=False)
        self.db = self.sessions()

    async def asyncTearDown(self):
        await self.db.close()
        await self.engine.dispose()
        self.tmp_dir.cleanup()

    async def seed(
        self,
        *,
        num_people=2,
        products=1,
        payment_status="completed",
        check_in=CHECK_IN,
        check_out=CHECK_OUT,
        customer_name="홍길동",
        customer_phone="010-1234-5678",
    ) -> tuple[Reservation, list[LeisureProduct]]:
        async with self.sessions() as s:
            reservation = Reservation(
                payment_status=payment_status,
                num_people=num_people,
                customer_name=customer_name,
                customer_phone=customer_phone,
                check_in_date=check_in,
                check_out_date=check_out,
            )
            s.add(reservation)

            created = []
            for i in range(products):
                partner = Partner(id=f"partner-{i + 1}", name=f"여수 파트너 {i + 1}")
                product = LeisureProduct(id=f"product-{i + 1}", partner_id=partner.id, name=f"요트 투어 {i + 1}")
                s.add(partner)
                s.add(product)
                created.append(product)

            await s.commit()
            return reservation, created

    async def fetch_coupon(self, coupon_code: str) -> Coupon | None:
        async with self.sessions() as s:
            res = await s.execute(select(Coupon).where(Coupon.coupon_code == coupon_code))
            return res.scalar_one_or_none()

    async def count_coupons(self) -> int:
        async with self.sessions() as s:
            res = await s.execute(select(Coupon.id))
            return len(res.scalars().all())

    async def fetch_logs(self, coupon_id: int) -> list[CouponUsageLog]:
        async with self.sessions() as s:
            res = await s.execute(
                select(CouponUsageLog)
                .where(CouponUsageLog.coupon_id == coupon_id)
                .order_by(CouponUsageLog.id.asc())
            )
            return list(res.scalars().all())
