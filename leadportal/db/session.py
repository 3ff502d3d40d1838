import logging
import time
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from leadportal.core.config import settings
from leadportal.core.metrics import active_connections

logger = logging.getLogger(__name__)


def install_checkout_watchdog(engine: AsyncEngine, warn_after: float) -> None:
    """Log connections that stay checked out of the pool longer than ``warn_after`` seconds."""

    @event.listens_for(engine.sync_engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy):
        connection_record.info["checked_out_at"] = time.monotonic()
        active_connections.inc()

    @event.listens_for(engine.sync_engine, "checkin")
    def _on_checkin(dbapi_connection, connection_record):
        started = connection_record.info.pop("checked_out_at", None)
        if started is None:
            return
        active_connections.dec()
        held = time.monotonic() - started
        if held > warn_after:
            logger.warning(f"A database connection was checked out for {held:.1f}s (limit {warn_after:.1f}s)")


def build_engine(url: str) -> AsyncEngine:
    kwargs = {"echo": False, "future": True, "pool_pre_ping": True}
    if not make_url(url).get_backend_name().startswith("sqlite"):
        kwargs.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
    engine = create_async_engine(url, **kwargs)
    install_checkout_watchdog(engine, settings.DB_CHECKOUT_WARN_SECONDS)
    return engine


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables() -> None:
    from leadportal.models.base import Base
    from leadportal.models import affiliate, audit, comment, document, lead, status_history, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
