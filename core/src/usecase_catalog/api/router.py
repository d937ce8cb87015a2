from __future__ import annotations

from fastapi import APIRouter

from usecase_catalog.api.auth import router as auth_router
from usecase_catalog.api.use_cases import router as use_cases_router

router = APIRouter(prefix="/api")

router.include_router(auth_router)
router.include_router(use_cases_router)
