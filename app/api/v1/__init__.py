from fastapi import APIRouter

from app.api.v1.routers import (
    health,
    loan_applications,
    loan_products,
    payments,
    users,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(users.router)
api_router.include_router(loan_products.router)
api_router.include_router(loan_applications.router)
api_router.include_router(payments.router)

__all__ = ["api_router"]
