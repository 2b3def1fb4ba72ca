import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.asyncio import Redis

from app.core.security import IdentityVerifier
from app.core.settings import settings
from app.db.init_db import init_db
from app.db.session import build_engine, build_sessionmaker
from app.services.payment_gateway import StripePaymentGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build process-wide clients once and release them on shutdown."""
    logger.info("Application startup")
    engine = build_engine(settings.database_url)
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.identity_verifier = IdentityVerifier.from_settings(settings)
    app.state.payment_gateway = StripePaymentGateway(settings.stripe_secret_key)
    app.state.redis = Redis.from_url(settings.redis_url, decode_responses=True)

    await init_db(engine, app.state.sessionmaker)
    try:
        yield
    finally:
        logger.info("Application shutdown")
        await app.state.identity_verifier.aclose()
        await app.state.redis.aclose()
        await engine.dispose()
