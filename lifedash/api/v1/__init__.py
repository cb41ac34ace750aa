"""Version 1 API routes for the life dashboard service."""
from __future__ import annotations

from fastapi import APIRouter

from lifedash.api.v1.calendar import router as calendar_router
from lifedash.api.v1.groceries import router as groceries_router
from lifedash.api.v1.health import router as health_router
from lifedash.api.v1.integrations import router as integrations_router
from lifedash.api.v1.logs import router as logs_router
from lifedash.api.v1.todos import router as todos_router

router = APIRouter()
router.include_router(health_router)
router.include_router(calendar_router)
router.include_router(todos_router)
router.include_router(groceries_router)
router.include_router(integrations_router)
router.include_router(logs_router)
