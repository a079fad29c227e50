"""Admin API router aggregation."""

from fastapi import APIRouter

from slabline.api.admin.commissions import router as commissions_router

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(commissions_router)

__all__ = ["admin_router"]
