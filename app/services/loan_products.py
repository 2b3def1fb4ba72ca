from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound
from app.models.loan_product import LoanProduct
from app.schemas.loan import LoanProductCreate, LoanProductUpdate
from app.services.audit import model_snapshot, record_audit_log
from app.services.authz import AuthContext

_NULLABLE_FIELDS = frozenset({"description", "image"})


async def get_product_or_404(db: AsyncSession, product_id: UUID) -> LoanProduct:
    stmt = select(LoanProduct).where(LoanProduct.id == product_id)
    result = await db.execute(stmt)
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFound("Loan product not found", details={"loan_id": str(product_id)})
    return product


async def create_product(
    db: AsyncSession, payload: LoanProductCreate, caller: AuthContext
) -> LoanProduct:
    product = LoanProduct(**payload.model_dump(), created_by=caller.email)
    db.add(product)
    await db.flush()
    await db.refresh(product)
    record_audit_log(
        db,
        actor_email=caller.email,
        action="loan_product.created",
        resource_type="loan_product",
        resource_id=str(product.id),
        new_value=model_snapshot(product),
    )
    await db.flush()
    return product


async def update_product(
    db: AsyncSession, product_id: UUID, payload: LoanProductUpdate, caller: AuthContext
) -> LoanProduct:
    product = await get_product_or_404(db, product_id)
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        # explicit null only clears nullable columns
        if value is not None or key in _NULLABLE_FIELDS
    }
    old_snapshot = model_snapshot(product, include=changes.keys())
    for key, value in changes.items():
        setattr(product, key, value)
    db.add(product)
    record_audit_log(
        db,
        actor_email=caller.email,
        action="loan_product.updated",
        resource_type="loan_product",
        resource_id=str(product.id),
        old_value=old_snapshot,
        new_value=model_snapshot(product, include=changes.keys()),
    )
    await db.flush()
    await db.refresh(product)
    return product


async def delete_product(db: AsyncSession, product_id: UUID, caller: AuthContext) -> None:
    product = await get_product_or_404(db, product_id)
    old_snapshot = model_snapshot(product)
    await db.delete(product)
    record_audit_log(
        db,
        actor_email=caller.email,
        action="loan_product.deleted",
        resource_type="loan_product",
        resource_id=str(product_id),
        old_value=old_snapshot,
    )
    await db.flush()
