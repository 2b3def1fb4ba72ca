from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.settings import settings

APP_VERSION = "0.1.0"


async def _check_db(engine: AsyncEngine | None) -> dict[str, str]:
    if engine is None:
        return {"status": "error", "error": "database engine not initialised"}
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}


async def _check_redis(redis: Redis | None) -> dict[str, str]:
    if redis is None:
        return {"status": "error", "error": "redis client not initialised"}
    try:
        await redis.ping()
        return {"status": "ok"}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload(engine: AsyncEngine | None, redis: Redis | None) -> dict[str, Any]:
    checks = {
        "database": await _check_db(engine),
        "redis": await _check_redis(redis),
    }
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
