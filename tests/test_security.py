import httpx
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.api import deps
from app.core.errors import register_exception_handlers
from app.core.security import IdentityVerificationError, IdentityVerifier

from tests.conftest import (
    PUBLIC_KEY,
    TEST_ISSUER,
    TEST_KID,
    _generate_key_pair,
    make_token,
    make_verifier,
)


@pytest.mark.asyncio
async def test_verify_returns_lowercased_email():
    verifier = make_verifier()
    identity = await verifier.verify(make_token("Rina.Akter@Example.com"))
    assert identity.email == "rina.akter@example.com"
    assert identity.subject == "uid-Rina.Akter@Example.com"
    assert identity.claims["aud"] == verifier.audience


@pytest.mark.asyncio
async def test_verify_rejects_expired_token():
    verifier = make_verifier()
    with pytest.raises(IdentityVerificationError):
        await verifier.verify(make_token(expires_in=-60))


@pytest.mark.asyncio
async def test_verify_rejects_wrong_audience():
    verifier = make_verifier()
    with pytest.raises(IdentityVerificationError):
        await verifier.verify(make_token(audience="someone-else"))


@pytest.mark.asyncio
async def test_verify_rejects_wrong_issuer():
    verifier = make_verifier()
    with pytest.raises(IdentityVerificationError):
        await verifier.verify(make_token(issuer="https://issuer.example.com/other"))


@pytest.mark.asyncio
async def test_verify_rejects_foreign_signature():
    other_private, _ = _generate_key_pair()
    verifier = make_verifier()
    with pytest.raises(IdentityVerificationError):
        await verifier.verify(make_token(private_key=other_private))


@pytest.mark.asyncio
async def test_verify_requires_email_claim():
    verifier = make_verifier()
    with pytest.raises(IdentityVerificationError):
        await verifier.verify(make_token(email=None))


@pytest.mark.asyncio
async def test_verify_rejects_garbage():
    verifier = make_verifier()
    with pytest.raises(IdentityVerificationError):
        await verifier.verify("not-a-jwt")


def _certs_client(calls: list[str]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(
            200,
            json={TEST_KID: PUBLIC_KEY},
            headers={"Cache-Control": "public, max-age=3600"},
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_verify_fetches_and_caches_provider_keys():
    calls: list[str] = []
    http_client = _certs_client(calls)
    verifier = IdentityVerifier(
        audience="arthi-test",
        issuer=TEST_ISSUER,
        certs_url="https://keys.example.com/certs",
        http_client=http_client,
    )

    first = await verifier.verify(make_token("a@example.com"))
    second = await verifier.verify(make_token("b@example.com"))

    assert first.email == "a@example.com"
    assert second.email == "b@example.com"
    assert calls == ["https://keys.example.com/certs"]
    await http_client.aclose()


@pytest.mark.asyncio
async def test_verify_rejects_unknown_key_id():
    calls: list[str] = []
    http_client = _certs_client(calls)
    verifier = IdentityVerifier(
        audience="arthi-test",
        issuer=TEST_ISSUER,
        certs_url="https://keys.example.com/certs",
        http_client=http_client,
    )
    with pytest.raises(IdentityVerificationError):
        await verifier.verify(make_token(kid="rotated-away"))
    await http_client.aclose()


@pytest.mark.asyncio
async def test_verify_reports_unreachable_key_endpoint():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    verifier = IdentityVerifier(
        audience="arthi-test",
        issuer=TEST_ISSUER,
        certs_url="https://keys.example.com/certs",
        http_client=http_client,
    )
    with pytest.raises(IdentityVerificationError):
        await verifier.verify(make_token())
    await http_client.aclose()


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/protected")
    async def protected_route(caller=Depends(deps.require_authenticated_user)):
        return {"email": caller.email}

    app.dependency_overrides[deps.get_identity_verifier] = lambda: make_verifier()
    return app


def test_protected_route_requires_bearer_token():
    client = TestClient(_build_app())
    resp = client.get("/protected")
    assert resp.status_code == 401
    body = resp.json()
    assert body["code"] == "unauthorized"
    assert body["data"] is None


def test_protected_route_rejects_invalid_token():
    client = TestClient(_build_app())
    resp = client.get("/protected", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["message"].startswith("Unauthorized access")


def test_protected_route_allows_verified_caller():
    client = TestClient(_build_app())
    token = make_token("Owner@Example.com")
    resp = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json() == {"email": "owner@example.com"}
