from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator, Awaitable, TypeVar

from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from leisure_coupons.core.config import settings
from leisure_coupons.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _connect_args(database_url: str) -> dict:
    drivername = make_url(database_url).drivername or ""
    if drivername.startswith("postgresql+asyncpg"):
        # server side deadline, in addition to the client side one in store_call
        return {"command_timeout": settings.DB_TIMEOUT_SECONDS}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await store_call(session.rollback())
            raise


async def init_db() -> None:
    # import models so every table is registered on Base.metadata
    import leisure_coupons.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


async def store_call(aw: Awaitable[T], *, timeout: float | None = None) -> T:
    """
    Await a datastore call under the configured deadline.

    Timeouts and connection-level driver failures surface as StoreUnavailable
    so callers can retry; integrity and programming errors propagate as-is.
    """
    deadline = settings.DB_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(aw, timeout=deadline)
    except asyncio.TimeoutError as e:
        logger.warning("db.call.timeout deadline=%ss", deadline)
        raise StoreUnavailable() from e
    except (OperationalError, InterfaceError) as e:
        logger.warning("db.call.unavailable error=%s", type(e.orig).__name__ if e.orig else type(e).__name__)
        raise StoreUnavailable() from e
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.warning("db.call.connection_invalidated")
            raise StoreUnavailable() from e
        raise
