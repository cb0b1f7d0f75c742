"""API v1 routes."""

from fastapi import APIRouter

from gencode.api.v1.routers import generate, health, status, tasks

router = APIRouter()
router.include_router(health.router)
router.include_router(generate.router)
router.include_router(tasks.router)
router.include_router(status.router)

__all__ = ["router"]
