# leisure_coupons/services/qr.py
from __future__ import annotations

import asyncio
import base64
import logging

from reportlab.graphics import renderSVG
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing

from leisure_coupons.core.config import settings
from leisure_coupons.core.errors import RenderError
from leisure_coupons.core.security import encrypt_qr_payload

logger = logging.getLogger(__name__)

SVG_DATA_URL_PREFIX = "data:image/svg+xml;base64,"


def build_qr_payload(coupon_code: str) -> str:
    if settings.QR_ENCRYPTED_PAYLOAD:
        return encrypt_qr_payload(coupon_code)
    return coupon_code


def render_qr(payload: str, size: int | None = None) -> str:
    """Render `payload` as a QR code and return it as an SVG data URL."""
    if not payload:
        raise RenderError()

    side = float(size or settings.QR_RENDER_SIZE)
    try:
        widget = QrCodeWidget(payload)
        x1, y1, x2, y2 = widget.getBounds()
        w, h = x2 - x1, y2 - y1
        d = Drawing(side, side, transform=[side / w, 0, 0, side / h, 0, 0])
        d.add(widget)
        svg = renderSVG.drawToString(d)
    except Exception as e:
        logger.exception("qr.render.error payload_len=%s", len(payload))
        raise RenderError() from e

    if isinstance(svg, str):
        svg = svg.encode("utf-8")
    return SVG_DATA_URL_PREFIX + base64.b64encode(svg).decode("ascii")


async def render_many(payloads: list[str]) -> list[str]:
    # units are independent; render them side by side off the event loop
    return list(await asyncio.gather(*(asyncio.to_thread(render_qr, p) for p in payloads)))
