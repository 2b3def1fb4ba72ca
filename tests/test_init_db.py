import pytest
from sqlalchemy import inspect, select

from app.core.settings import settings
from app.db.init_db import init_db
from app.db.session import build_engine, build_sessionmaker
from app.models.user import User


@pytest.mark.asyncio
async def test_init_db_creates_tables_and_seeds_admin(monkeypatch):
    monkeypatch.setattr(settings, "auto_create_tables", True)
    monkeypatch.setattr(settings, "seed_admin_email", "Root@Example.com")
    engine = build_engine("sqlite+aiosqlite://")
    factory = build_sessionmaker(engine)

    await init_db(engine, factory)
    await init_db(engine, factory)

    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    assert {"users", "loan_products", "loan_applications", "payment_records", "audit_logs"} <= set(tables)

    async with factory() as session:
        admins = (await session.execute(select(User))).scalars().all()
    assert [(u.email, u.role, u.account_status) for u in admins] == [
        ("root@example.com", "admin", "approved")
    ]
    await engine.dispose()
