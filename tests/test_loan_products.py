from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.core.errors import NotFound
from app.models.audit_log import AuditLog
from app.models.loan_product import LoanProduct
from app.schemas.enums import UserRole
from app.schemas.loan import LoanProductCreate, LoanProductUpdate
from app.services import loan_products
from app.services.authz import AuthContext

from tests.conftest import auth_headers, make_product, make_user

MANAGER = AuthContext(email="manager@example.com", role=UserRole.MANAGER)

PRODUCT_PAYLOAD = {
    "title": "Harvest Bridge",
    "description": "Seasonal loan for smallholders",
    "category": "agriculture",
    "interest_rate": "6.25",
    "max_loan_limit": "3000",
    "required_documents": ["nid"],
    "emi_plans": [3, 6],
    "show_on_home": True,
}


@pytest.mark.asyncio
async def test_create_product_records_creator_and_audit(db):
    product = await loan_products.create_product(db, LoanProductCreate(**PRODUCT_PAYLOAD), MANAGER)
    await db.commit()

    assert product.created_by == "manager@example.com"
    assert product.interest_rate == Decimal("6.25")
    log = (await db.execute(select(AuditLog))).scalar_one()
    assert log.action == "loan_product.created"
    assert log.resource_id == str(product.id)
    assert log.new_value["title"] == "Harvest Bridge"


@pytest.mark.asyncio
async def test_update_product_changes_only_sent_fields(db):
    product = await make_product(db)
    updated = await loan_products.update_product(
        db,
        product.id,
        LoanProductUpdate(max_loan_limit=Decimal("9000"), title=None, description=None),
        MANAGER,
    )
    await db.commit()

    assert updated.max_loan_limit == Decimal("9000")
    assert updated.title == "Small Business Starter"
    assert updated.description is None
    log = (await db.execute(select(AuditLog))).scalar_one()
    assert set(log.old_value) == {"max_loan_limit", "description"}
    assert Decimal(log.old_value["max_loan_limit"]) == Decimal("5000")
    assert log.old_value["description"] == "Working capital for new shops"
    assert Decimal(log.new_value["max_loan_limit"]) == Decimal("9000")
    assert log.new_value["description"] is None


@pytest.mark.asyncio
async def test_delete_product(db):
    product = await make_product(db)
    await loan_products.delete_product(db, product.id, MANAGER)
    await db.commit()

    remaining = (await db.execute(select(LoanProduct))).scalars().all()
    assert remaining == []
    with pytest.raises(NotFound):
        await loan_products.get_product_or_404(db, product.id)


@pytest.mark.asyncio
async def test_product_crud_over_http(client, db):
    await make_user(db, email="manager@example.com", role=UserRole.MANAGER)
    headers = auth_headers("manager@example.com")

    created = await client.post("/api/v1/addloans", json=PRODUCT_PAYLOAD, headers=headers)
    assert created.status_code == 201
    product_id = created.json()["id"]

    fetched = await client.get(f"/api/v1/loan/{product_id}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Harvest Bridge"
    assert fetched.json()["emi_plans"] == [3, 6]

    patched = await client.patch(
        f"/api/v1/loans/{product_id}", json={"show_on_home": False}, headers=headers
    )
    assert patched.status_code == 200
    assert patched.json()["show_on_home"] is False

    deleted = await client.delete(f"/api/v1/loans/{product_id}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["deleted"] is True

    missing = await client.get(f"/api/v1/loan/{product_id}")
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_get_product_rejects_malformed_id(client):
    resp = await client.get("/api/v1/loan/not-a-uuid")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_product_rejects_negative_rate(client, db):
    await make_user(db, email="admin@example.com", role=UserRole.ADMIN)
    payload = dict(PRODUCT_PAYLOAD, interest_rate="-1")
    resp = await client.post(
        "/api/v1/addloans", json=payload, headers=auth_headers("admin@example.com")
    )
    assert resp.status_code == 422
    assert resp.json()["message"].startswith("interest_rate")


@pytest.mark.asyncio
async def test_update_missing_product(client, db):
    await make_user(db, email="admin@example.com", role=UserRole.ADMIN)
    resp = await client.patch(
        f"/api/v1/loans/{uuid4()}", json={"title": "x"}, headers=auth_headers("admin@example.com")
    )
    assert resp.status_code == 404
