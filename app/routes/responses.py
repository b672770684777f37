"""Candidate response endpoints keyed by assessment id.

Draft saves and final submissions share the POST route and are told apart
by ``status``. A body that reuses an existing response id replaces the
stored record unless that record is already completed. Answers are stored as
sent; rule checks belong to the runtime session.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from app.http.problem import problem_response
from app.logic import events
from app.logic.csv_io import build_export_csv, export_filename
from app.logic.identifiers import new_response_id
from app.logic.reporting import summarize_responses
from app.logic.repository_assessments import SqlAssessmentRepository
from app.models.assessment import Assessment, AssessmentResponse, CamelModel, QuestionResponse, utc_now_iso
from app.models.question_types import ResponseStatus
from app.routes.dependencies import get_repository


router = APIRouter()
logger = logging.getLogger(__name__)


class ResponseIn(CamelModel):
    """Response body accepted by POST; the id is minted when absent."""

    id: Optional[str] = None
    candidate_id: Optional[str] = None
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    responses: List[QuestionResponse] = []
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    status: str = ResponseStatus.IN_PROGRESS
    current_section_index: int = 0


def _assessment_or_none(repo: SqlAssessmentRepository, assessment_id: str) -> Optional[Assessment]:
    return repo.get_assessment_by_id(assessment_id)


def _not_found(assessment_id: str) -> JSONResponse:
    return problem_response(
        404,
        "Assessment not found",
        f"No assessment with id {assessment_id}",
        code="assessment_not_found",
    )


@router.post(
    "/assessments/{assessment_id}/responses",
    summary="Store a draft or completed response",
    operation_id="postAssessmentResponse",
    tags=["Responses"],
)
def post_response(
    assessment_id: str,
    payload: ResponseIn,
    repo: SqlAssessmentRepository = Depends(get_repository),
):
    assessment = _assessment_or_none(repo, assessment_id)
    if assessment is None:
        return _not_found(assessment_id)
    now = utc_now_iso()
    completed = payload.status == ResponseStatus.COMPLETED
    response = AssessmentResponse(
        id=payload.id or new_response_id(),
        assessment_id=assessment_id,
        candidate_id=payload.candidate_id,
        candidate_name=payload.candidate_name,
        candidate_email=payload.candidate_email,
        responses=payload.responses,
        started_at=payload.started_at or now,
        completed_at=(payload.completed_at or now) if completed else payload.completed_at,
        status=payload.status,
        current_section_index=payload.current_section_index,
    )
    if payload.id:
        existing = repo.get_response(payload.id)
        if existing is not None and existing.status == ResponseStatus.COMPLETED:
            if completed:
                logger.info("post_response_repeat assessment_id=%s response_id=%s", assessment_id, existing.id)
                return JSONResponse(existing.to_storage(), status_code=200)
            return problem_response(
                409,
                "Response already completed",
                f"Response {existing.id} is completed and can no longer change",
                code="response_completed",
            )
    stored = repo.post_response(assessment_id, response)
    event = events.RESPONSE_SUBMITTED if completed else events.RESPONSE_SAVED
    events.publish(event, {"assessment_id": assessment_id, "response_id": stored.id, "status": stored.status})
    return JSONResponse(stored.to_storage(), status_code=201)


@router.get(
    "/assessments/{assessment_id}/responses",
    summary="List stored responses for an assessment",
    operation_id="listAssessmentResponses",
    tags=["Responses"],
)
def list_responses(assessment_id: str, repo: SqlAssessmentRepository = Depends(get_repository)):
    if _assessment_or_none(repo, assessment_id) is None:
        return _not_found(assessment_id)
    return [r.to_storage() for r in repo.list_responses(assessment_id)]


@router.get(
    "/assessments/{assessment_id}/responses/summary",
    summary="Completion statistics for an assessment",
    operation_id="summarizeAssessmentResponses",
    tags=["Responses"],
)
def summarize(assessment_id: str, repo: SqlAssessmentRepository = Depends(get_repository)):
    assessment = _assessment_or_none(repo, assessment_id)
    if assessment is None:
        return _not_found(assessment_id)
    summary = summarize_responses(assessment, repo.list_responses(assessment_id))
    return summary.model_dump(mode="json")


@router.get(
    "/assessments/{assessment_id}/responses/export",
    summary="Export responses as CSV",
    operation_id="exportAssessmentResponses",
    tags=["Responses", "Export"],
)
def export_responses(assessment_id: str, repo: SqlAssessmentRepository = Depends(get_repository)):
    assessment = _assessment_or_none(repo, assessment_id)
    if assessment is None:
        return _not_found(assessment_id)
    data = build_export_csv(assessment, repo.list_responses(assessment_id))
    headers = {"Content-Disposition": f'attachment; filename="{export_filename(assessment)}"'}
    return Response(content=data, media_type="text/csv; charset=utf-8", headers=headers)


__all__ = ["router"]
