"""FastAPI dependency providers shared by the assessment routes."""

from __future__ import annotations

from app.logic.repository_assessments import SqlAssessmentRepository


def get_repository() -> SqlAssessmentRepository:
    """Repository bound to the shared engine; tests override this dependency."""
    return SqlAssessmentRepository()


__all__ = ["get_repository"]
