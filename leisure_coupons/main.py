import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# IMPORTANT:
# This imports ALL models so SQLAlchemy registers tables + FKs correctly
import leisure_coupons.models  # noqa: F401

from leisure_coupons.core.config import settings
from leisure_coupons.core.db import close_db, init_db
from leisure_coupons.core.errors import CouponError, Internal, InvalidInput

# Routers
from leisure_coupons.routers.coupons import router as coupons_router
from leisure_coupons.routers.health import router as health_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app.startup database=%s", "configured" if settings.DATABASE_URL else "not configured")
    if settings.DB_AUTO_CREATE:
        await init_db()
    yield
    logger.info("app.shutdown")
    await close_db()


app = FastAPI(title="Leisure Coupons API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CouponError)
async def coupon_error_handler(request: Request, exc: CouponError):
    if exc.status_code >= 500:
        logger.warning("request.failed path=%s kind=%s", request.url.path, exc.kind)
    else:
        logger.info("request.rejected path=%s kind=%s", request.url.path, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    err = InvalidInput()
    return JSONResponse(status_code=err.status_code, content=err.to_payload())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        content = {
            "success": False,
            "error": "route_not_found",
            "message": "요청하신 API 경로를 찾을 수 없습니다",
        }
    else:
        content = {"success": False, "error": "http_error", "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # never echo exception text to the caller
    logger.exception("request.unhandled path=%s", request.url.path)
    err = Internal()
    return JSONResponse(status_code=err.status_code, content=err.to_payload())


app.include_router(health_router)
app.include_router(coupons_router)
