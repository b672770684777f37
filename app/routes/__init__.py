"""APIRouter registration for the assessment service."""

from __future__ import annotations

from fastapi import APIRouter

from app.routes.assessments import router as assessments_router
from app.routes.responses import router as responses_router

api_router = APIRouter()
api_router.include_router(assessments_router, tags=["Assessments"])
api_router.include_router(responses_router, tags=["Responses"])

__all__ = ["api_router"]
