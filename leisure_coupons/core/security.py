from __future__ import annotations

import base64
import hashlib
import re

from cryptography.fernet import Fernet, InvalidToken

from leisure_coupons.core.config import settings
from leisure_coupons.core.errors import InvalidInput

_BARE_CODE = re.compile(r"^[A-Z0-9]{9}$")


class QrPayloadError(InvalidInput):
    default_message = "QR 코드가 올바르지 않습니다"


# -------------------------
# Encrypted QR payloads
# -------------------------
def _fernet() -> Fernet:
    if not settings.QR_ENCRYPTION_KEY:
        raise RuntimeError("QR_ENCRYPTION_KEY is not configured")
    # any secret string works; stretch it to the 32 bytes Fernet expects
    digest = hashlib.sha256(settings.QR_ENCRYPTION_KEY.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_qr_payload(coupon_code: str) -> str:
    return _fernet().encrypt(coupon_code.encode("utf-8")).decode("ascii")


def decrypt_qr_payload(token: str) -> str:
    if not settings.QR_ENCRYPTION_KEY:
        raise QrPayloadError()
    try:
        code = _fernet().decrypt(token.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeError) as e:
        raise QrPayloadError() from e

    if not _BARE_CODE.match(code):
        raise QrPayloadError()
    return code


def resolve_scanned_code(raw: str) -> str:
    """Accept what a scanner read (bare code or encrypted token) and return the coupon code."""
    value = (raw or "").strip()
    if _BARE_CODE.match(value):
        return value
    if settings.QR_ENCRYPTED_PAYLOAD:
        return decrypt_qr_payload(value)
    # unknown shape; lookup will report coupon_not_found
    return value
