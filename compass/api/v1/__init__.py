"""API v1 router package."""

from fastapi import APIRouter

from compass.api.v1 import assessments, sessions, specifications

router = APIRouter(prefix="/api/v1")

router.include_router(assessments.router, prefix="/assessments", tags=["assessments"])
router.include_router(specifications.router, prefix="/specifications", tags=["specifications"])
router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
