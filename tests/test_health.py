import pytest

from app.core import health as health_module


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


@pytest.mark.asyncio
async def test_health_live_returns_ok(client) -> None:
    response = await client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()
    assert payload.get("status") == "ok"
    assert "timestamp" in payload
    assert response.headers.get("x-request-id")


@pytest.mark.asyncio
async def test_health_echoes_request_id(client) -> None:
    response = await client.get("/api/v1/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"


@pytest.mark.asyncio
async def test_health_ready_ok(client, monkeypatch) -> None:
    async def ok_redis(_redis):
        return {"status": "ok"}

    monkeypatch.setattr(health_module, "_check_redis", ok_redis)

    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert payload["checks"]["database"]["status"] == "ok"
    assert payload["checks"]["redis"]["status"] == "ok"
    assert payload["version"] == health_module.APP_VERSION
    assert payload["environment"] == "test"


@pytest.mark.asyncio
async def test_health_ready_degraded_without_redis(client) -> None:
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload.get("status") == "degraded"
    assert payload.get("ready") is False
    assert payload["checks"]["database"]["status"] == "ok"
    assert payload["checks"]["redis"]["status"] == "error"


@pytest.mark.asyncio
async def test_health_ready_degraded_when_database_fails(client, monkeypatch) -> None:
    async def bad_db(_engine):
        return {"status": "error", "error": "unreachable"}

    async def ok_redis(_redis):
        return {"status": "ok"}

    monkeypatch.setattr(health_module, "_check_db", bad_db)
    monkeypatch.setattr(health_module, "_check_redis", ok_redis)

    response = await client.get("/api/v1/health/ready")
    payload = response.json()
    assert payload.get("status") == "degraded"
    assert payload["checks"]["database"]["status"] == "error"
