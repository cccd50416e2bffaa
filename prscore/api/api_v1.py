from fastapi import APIRouter

from prscore.api.endpoints import evaluations_router, health_router

router = APIRouter(prefix="/api/v1")

router.include_router(health_router, prefix="/health", tags=["health"])
router.include_router(evaluations_router, prefix="/evaluations", tags=["evaluations"])
