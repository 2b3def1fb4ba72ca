from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.loan import LoanProductCreate, LoanProductOut, LoanProductUpdate
from app.services import loan_products

router = APIRouter(tags=["loan-products"])


@router.post(
    "/addloans",
    response_model=LoanProductOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a loan product",
)
async def create_loan_product(
    payload: LoanProductCreate,
    staff: deps.AuthContext = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db),
) -> LoanProductOut:
    product = await loan_products.create_product(db, payload, staff)
    await db.commit()
    return LoanProductOut.model_validate(product)


@router.get("/loan/{loan_id}", response_model=LoanProductOut, summary="Get a loan product")
async def get_loan_product(loan_id: UUID, db: AsyncSession = Depends(get_db)) -> LoanProductOut:
    product = await loan_products.get_product_or_404(db, loan_id)
    return LoanProductOut.model_validate(product)


@router.patch("/loans/{loan_id}", response_model=LoanProductOut, summary="Update a loan product")
async def update_loan_product(
    loan_id: UUID,
    payload: LoanProductUpdate,
    staff: deps.AuthContext = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db),
) -> LoanProductOut:
    product = await loan_products.update_product(db, loan_id, payload, staff)
    await db.commit()
    return LoanProductOut.model_validate(product)


@router.delete("/loans/{loan_id}", summary="Delete a loan product")
async def delete_loan_product(
    loan_id: UUID,
    staff: deps.AuthContext = Depends(deps.require_staff),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await loan_products.delete_product(db, loan_id, staff)
    await db.commit()
    return {"deleted": True, "id": str(loan_id)}
