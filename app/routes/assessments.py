"""Assessment definition endpoints keyed by job id."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.http.problem import problem_response
from app.logic import events
from app.logic.builder import find_broken_conditionals
from app.logic.identifiers import generate_id
from app.logic.order_sequences import sort_and_renumber
from app.logic.repository_assessments import SqlAssessmentRepository
from app.logic.runtime_session import AssessmentSession
from app.logic.validation import validate_all
from app.models.assessment import AnswerRaw, Assessment, CamelModel, Section, utc_now_iso
from app.routes.dependencies import get_repository


router = APIRouter()
logger = logging.getLogger(__name__)


class AssessmentIn(CamelModel):
    """Assessment body accepted by PUT; server-owned fields are optional."""

    id: Optional[str] = None
    job_id: Optional[str] = None
    title: str
    description: str = ""
    sections: List[Section] = []
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class EvaluateRequest(CamelModel):
    answers: Dict[str, Optional[AnswerRaw]] = {}
    include_hidden: bool = False


class EvaluateResult(CamelModel):
    visible_question_ids: List[str]
    hidden_question_ids: List[str]
    violations: Dict[str, List[str]]
    valid: bool
    progress: float


def _not_found(job_id: str) -> JSONResponse:
    return problem_response(
        404,
        "Assessment not found",
        f"No assessment is stored for job {job_id}",
        code="assessment_not_found",
    )


@router.get(
    "/assessments",
    summary="List stored assessments",
    operation_id="listAssessments",
    tags=["Assessments"],
)
def list_assessments(repo: SqlAssessmentRepository = Depends(get_repository)):
    return [a.to_storage() for a in repo.list_assessments()]


@router.get(
    "/assessments/{job_id}",
    summary="Get the assessment for a job",
    operation_id="getAssessment",
    tags=["Assessments"],
)
def get_assessment(job_id: str, repo: SqlAssessmentRepository = Depends(get_repository)):
    assessment = repo.get_assessment(job_id)
    if assessment is None:
        return _not_found(job_id)
    return assessment.to_storage()


@router.put(
    "/assessments/{job_id}",
    summary="Create or replace the assessment for a job",
    operation_id="putAssessment",
    tags=["Assessments"],
)
def put_assessment(
    job_id: str,
    payload: AssessmentIn,
    repo: SqlAssessmentRepository = Depends(get_repository),
):
    if payload.job_id and payload.job_id != job_id:
        logger.info("put_assessment_job_id_overridden path=%s body=%s", job_id, payload.job_id)
    now = utc_now_iso()
    sections = [
        s.model_copy(update={"questions": sort_and_renumber(s.questions)})
        for s in sort_and_renumber(payload.sections)
    ]
    assessment = Assessment(
        id=payload.id or generate_id(),
        job_id=job_id,
        title=payload.title,
        description=payload.description,
        sections=sections,
        is_active=payload.is_active,
        created_at=payload.created_at or now,
        updated_at=now,
    )
    broken = find_broken_conditionals(assessment)
    if broken:
        logger.warning("put_assessment_broken_conditionals job_id=%s question_ids=%s", job_id, broken)
    stored, created = repo.put_assessment(job_id, assessment)
    events.publish(
        events.ASSESSMENT_SAVED,
        {"job_id": job_id, "assessment_id": stored.id, "created": created},
    )
    headers = {"Location": f"/api/v1/assessments/{job_id}"} if created else None
    return JSONResponse(stored.to_storage(), status_code=201 if created else 200, headers=headers)


@router.post(
    "/assessments/{job_id}/evaluate",
    summary="Preview visibility, validation and progress for a set of answers",
    operation_id="evaluateAssessment",
    tags=["Assessments"],
)
def evaluate_assessment(
    job_id: str,
    payload: EvaluateRequest,
    repo: SqlAssessmentRepository = Depends(get_repository),
):
    assessment = repo.get_assessment(job_id)
    if assessment is None:
        return _not_found(job_id)
    session = AssessmentSession(assessment)
    for question_id, value in payload.answers.items():
        session.update_response(question_id, value)
    visible = [q.id for q in session.visible_questions()]
    visible_set = set(visible)
    hidden = [q.id for _s, q in assessment.iter_questions() if q.id not in visible_set]
    violations = validate_all(assessment, session.state.responses, include_hidden=payload.include_hidden)
    result = EvaluateResult(
        visible_question_ids=visible,
        hidden_question_ids=hidden,
        violations=violations,
        valid=not violations,
        progress=session.compute_progress(),
    )
    return result.to_storage()


__all__ = ["router"]
