import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx

from leisure_coupons.core import security
from leisure_coupons.core.db import get_db
from leisure_coupons.core.security import encrypt_qr_payload
from leisure_coupons.main import app
from leisure_coupons.routers import coupons as coupons_router
from leisure_coupons.services.redemption import service_today
from tests.support import DatabaseTestCase


class CouponApiTest(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()

        async def _get_test_db():
            async with self.sessions() as session:
                yield session

        app.dependency_overrides[get_db] = _get_test_db
        self.addCleanup(app.dependency_overrides.clear)

        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

        today = service_today(datetime.now(timezone.utc))
        self.reservation, products = await self.seed(
            num_people=2,
            check_in=today - timedelta(days=1),
            check_out=today + timedelta(days=1),
        )
        self.partner_id = products[0].partner_id

    async def asyncTearDown(self):
        await self.client.aclose()
        await super().asyncTearDown()

    async def _issue(self):
        r = await self.client.post(
            "/coupons/issue",
            json={"reservation_id": self.reservation.id, "payment_key": "pay-1"},
        )
        self.assertEqual(r.status_code, 200, r.text)
        return r.json()["issued_coupons"]

    async def test_health(self):
        r = await self.client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["success"])

    async def test_issue_returns_coupons(self):
        r = await self.client.post(
            "/coupons/issue",
            json={"reservation_id": self.reservation.id, "customer_id": 7, "payment_key": "pay-1"},
        )
        body = r.json()

        self.assertEqual(r.status_code, 200)
        self.assertTrue(body["success"])
        self.assertEqual(len(body["issued_coupons"]), 2)
        self.assertEqual(body["message"], "쿠폰 2개가 발급되었습니다")
        first = body["issued_coupons"][0]
        self.assertEqual(set(first), {"id", "coupon_code", "status", "qr_code_url", "valid_from", "valid_until"})
        self.assertEqual(first["status"], "issued")
        self.assertTrue(first["qr_code_url"].startswith("data:image/svg+xml;base64,"))

    async def test_issue_errors(self):
        r = await self.client.post("/coupons/issue", json={"reservation_id": self.reservation.id})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "invalid_input")

        r = await self.client.post("/coupons/issue", json={"reservation_id": "missing", "payment_key": "p"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "reservation_not_found")

    async def test_unpaid_reservation_is_401(self):
        unpaid, _ = await self.seed(payment_status="pending", products=0)
        r = await self.client.post("/coupons/issue", json={"reservation_id": unpaid.id, "payment_key": "p"})
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.json()["error"], "payment_not_completed")

    async def test_scan_then_use(self):
        coupon = (await self._issue())[0]
        code = coupon["coupon_code"]

        r = await self.client.get(f"/coupons/{code}", params={"partner_id": self.partner_id})
        self.assertEqual(r.status_code, 200, r.text)
        scanned = r.json()["coupon"]
        self.assertEqual(scanned["status"], "in_use")
        self.assertEqual(scanned["customer_name"], "홍길동")
        self.assertEqual(scanned["message"], "사용 가능한 쿠폰입니다")

        r = await self.client.post(
            f"/coupons/{code}/use",
            json={"partner_id": self.partner_id, "staff_id": "s-1", "staff_name": "김직원"},
        )
        self.assertEqual(r.status_code, 200, r.text)
        used = r.json()["coupon"]
        self.assertEqual(used["status"], "used")
        self.assertEqual(used["used_by_staff"], "김직원")
        self.assertIsNotNone(used["used_at"])

        r = await self.client.post(
            f"/coupons/{code}/use",
            json={"partner_id": self.partner_id, "staff_name": "김직원"},
        )
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["error"], "coupon_already_used")

        r = await self.client.get(f"/coupons/{code}")
        self.assertEqual(r.status_code, 409)
        self.assertIn("used_at", r.json())

        r = await self.client.get(f"/coupons/{code}/logs")
        self.assertEqual([log["action"] for log in r.json()["logs"]], ["issued", "scanned", "used"])

    async def test_scan_errors(self):
        code = (await self._issue())[0]["coupon_code"]

        r = await self.client.get("/coupons/ZZZZZZZZZ")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["error"], "coupon_not_found")

        r = await self.client.get(f"/coupons/{code}", params={"partner_id": "partner-x"})
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.json()["error"], "partner_mismatch")

    async def test_use_requires_partner_and_staff(self):
        code = (await self._issue())[0]["coupon_code"]
        r = await self.client.post(f"/coupons/{code}/use", json={"partner_id": self.partner_id})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "invalid_input")

    async def test_cancel_then_scan(self):
        code = (await self._issue())[0]["coupon_code"]

        r = await self.client.post(f"/coupons/{code}/cancel", json={"reason": "환불"})
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["coupon"]["status"], "cancelled")

        r = await self.client.get(f"/coupons/{code}")
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["error"], "coupon_cancelled")

    async def test_expired_scan_is_410(self):
        today = service_today(datetime.now(timezone.utc))
        past, _ = await self.seed(
            num_people=1,
            products=0,
            check_in=today - timedelta(days=5),
            check_out=today - timedelta(days=3),
        )
        r = await self.client.post("/coupons/issue", json={"reservation_id": past.id, "payment_key": "p"})
        code = r.json()["issued_coupons"][0]["coupon_code"]

        r = await self.client.get(f"/coupons/{code}")
        self.assertEqual(r.status_code, 410)
        self.assertEqual(r.json()["error"], "coupon_expired")
        self.assertEqual(r.json()["valid_until"], (today - timedelta(days=3)).isoformat())
        self.assertEqual((await self.fetch_coupon(code)).status, "expired")

    async def test_unexpected_failure_does_not_leak_details(self):
        code = (await self._issue())[0]["coupon_code"]
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        )
        self.addAsyncCleanup(client.aclose)

        boom = RuntimeError("secret dsn postgresql://admin:hunter2@db/coupons")
        with patch.object(coupons_router, "fetch_for_scan", side_effect=boom):
            r = await client.get(f"/coupons/{code}")

        self.assertEqual(r.status_code, 500)
        body = r.json()
        self.assertEqual(body["error"], "internal")
        self.assertFalse(body["success"])
        self.assertNotIn("secret", r.text)
        self.assertNotIn("hunter2", r.text)

    async def test_encrypted_qr_content_works_on_every_coupon_route(self):
        with patch.multiple(security.settings, QR_ENCRYPTION_KEY="api-test-key", QR_ENCRYPTED_PAYLOAD=True):
            code = (await self._issue())[0]["coupon_code"]
            token = encrypt_qr_payload(code)

            r = await self.client.get(f"/coupons/{token}", params={"partner_id": self.partner_id})
            self.assertEqual(r.status_code, 200, r.text)
            self.assertEqual(r.json()["coupon"]["coupon_code"], code)

            r = await self.client.post(f"/coupons/{token}/cancel", json={"reason": "환불"})
            self.assertEqual(r.status_code, 200, r.text)
            self.assertEqual(r.json()["coupon"]["status"], "cancelled")

            r = await self.client.get(f"/coupons/{token}/logs")
            self.assertEqual(r.status_code, 200, r.text)
            self.assertEqual(r.json()["coupon_code"], code)
            self.assertEqual([log["action"] for log in r.json()["logs"]], ["issued", "scanned", "cancelled"])

            code2 = (await self._issue())[0]["coupon_code"]
            r = await self.client.post(
                f"/coupons/{encrypt_qr_payload(code2)}/use",
                json={"partner_id": self.partner_id, "staff_name": "김직원"},
            )
            self.assertEqual(r.status_code, 200, r.text)
            self.assertEqual(r.json()["coupon"]["coupon_code"], code2)

    async def test_unreadable_qr_content_is_invalid_input(self):
        with patch.multiple(security.settings, QR_ENCRYPTION_KEY="api-test-key", QR_ENCRYPTED_PAYLOAD=True):
            r = await self.client.get("/coupons/not-a-valid-token")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "invalid_input")

    async def test_unknown_route(self):
        r = await self.client.get("/nope")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["error"], "route_not_found")


if __name__ == "__main__":
    unittest.main()
