from __future__ import annotations

from datetime import date, datetime
from typing import Any


class CouponError(Exception):
    """
    Base for every failure the coupon core reports to callers.

    `kind` is the stable machine-readable code, `status_code` the HTTP status
    the surrounding service answers with, `extra` any fields the caller needs
    besides the message (e.g. used_at, valid_until).
    """

    kind = "internal"
    status_code = 500
    retryable = False
    default_message = "서버 내부 오류가 발생했습니다"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {"success": False, "error": self.kind, "message": self.message}
        for k, v in self.extra.items():
            payload[k] = v.isoformat() if isinstance(v, (date, datetime)) else v
        return payload


class InvalidInput(CouponError):
    kind = "invalid_input"
    status_code = 400
    default_message = "필수 필드가 누락되었습니다"


class ReservationNotFound(CouponError):
    kind = "reservation_not_found"
    status_code = 400
    default_message = "예약을 찾을 수 없습니다"


class PaymentNotCompleted(CouponError):
    kind = "payment_not_completed"
    status_code = 401
    default_message = "결제가 완료되지 않았습니다"


class NoProducts(CouponError):
    kind = "no_products"
    status_code = 400
    default_message = "레저 상품을 찾을 수 없습니다"


class CouponNotFound(CouponError):
    kind = "coupon_not_found"
    status_code = 404
    default_message = "쿠폰을 찾을 수 없습니다"


class PartnerMismatch(CouponError):
    kind = "partner_mismatch"
    status_code = 403
    default_message = "이 쿠폰은 다른 파트너사 쿠폰입니다"


class CouponAlreadyUsed(CouponError):
    kind = "coupon_already_used"
    status_code = 409
    default_message = "이미 사용된 쿠폰입니다"


class CouponCancelled(CouponError):
    kind = "coupon_cancelled"
    status_code = 409
    default_message = "취소된 쿠폰입니다"


class CouponExpired(CouponError):
    kind = "coupon_expired"
    status_code = 410
    default_message = "유효기간이 지난 쿠폰입니다"


class StoreUnavailable(CouponError):
    kind = "store_unavailable"
    status_code = 503
    retryable = True
    default_message = "데이터 저장소에 일시적으로 접근할 수 없습니다"


class RenderError(CouponError):
    kind = "render_error"
    status_code = 502
    retryable = True
    default_message = "QR 코드를 생성하지 못했습니다"


class Internal(CouponError):
    pass
