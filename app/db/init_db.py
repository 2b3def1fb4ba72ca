import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.settings import settings
from app.db.base import Base
from app.services.users import ensure_seed_admin

from app import models  # noqa: F401  (register mappers on Base.metadata)

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """
    Create tables for local runs and seed the first admin account.
    """
    if settings.auto_create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    if not settings.seed_admin_email:
        return
    async with session_factory() as session:
        await ensure_seed_admin(session, settings.seed_admin_email, settings.seed_admin_display_name)
        await session.commit()
