from __future__ import annotations

from fastapi import APIRouter

from commission_engine.api.commissions import router as commissions_router
from commission_engine.api.health import router as health_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(commissions_router)
