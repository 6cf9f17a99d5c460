from fastapi import APIRouter

from app.api.v1.endpoints import accounts, reports, view

api_router = APIRouter()
api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(view.router, prefix="/view", tags=["view"])
