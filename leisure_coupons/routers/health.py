# leisure_coupons/routers/health.py
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from leisure_coupons.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    return {
        "success": True,
        "message": "Leisure coupon API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "configured" if settings.DATABASE_URL else "not configured",
    }
