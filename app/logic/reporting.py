"""Summary statistics over stored assessment responses."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel

from app.models.answer_value import tag_answer
from app.models.assessment import Assessment, AssessmentResponse
from app.models.question_types import ResponseStatus

logger = logging.getLogger(__name__)


class QuestionSummary(BaseModel):
    question_id: str
    question_text: str
    question_type: str
    response_count: int


class ResponseSummary(BaseModel):
    total_responses: int
    completed_responses: int
    in_progress_responses: int
    completion_rate: float
    average_completion_seconds: float
    questions: List[QuestionSummary]


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("summary_timestamp_unparseable value=%r", value)
        return None


def summarize_responses(
    assessment: Assessment,
    responses: Iterable[AssessmentResponse],
) -> ResponseSummary:
    """Aggregate completion counts, rate, duration and per-question counts.

    Per-question counts consider completed responses only and skip empty
    answers. Completion time averages over completed responses whose start
    and completion timestamps both parse.
    """
    items = list(responses)
    completed = [r for r in items if r.status == ResponseStatus.COMPLETED]
    in_progress = sum(1 for r in items if r.status == ResponseStatus.IN_PROGRESS)

    durations: List[float] = []
    for response in completed:
        start = _parse_ts(response.started_at)
        end = _parse_ts(response.completed_at)
        if start is not None and end is not None:
            durations.append((end - start).total_seconds())

    questions: List[QuestionSummary] = []
    for _section, question in assessment.iter_questions():
        count = 0
        for response in completed:
            entry = response.response_for(question.id)
            if entry is not None and not tag_answer(question.type, entry.value).is_empty:
                count += 1
        questions.append(
            QuestionSummary(
                question_id=question.id,
                question_text=question.text,
                question_type=question.type,
                response_count=count,
            )
        )

    return ResponseSummary(
        total_responses=len(items),
        completed_responses=len(completed),
        in_progress_responses=in_progress,
        completion_rate=(len(completed) / len(items) * 100) if items else 0.0,
        average_completion_seconds=(sum(durations) / len(durations)) if durations else 0.0,
        questions=questions,
    )


__all__ = ["QuestionSummary", "ResponseSummary", "summarize_responses"]
