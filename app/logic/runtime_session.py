"""Candidate runtime session.

Drives one candidate through an assessment: records answers, gates section
navigation on validation of the visible questions in the current section,
reports progress, saves drafts and submits the finalized response.

Lifecycle: ``not-started`` until the first answer creates the backing
AssessmentResponse, then ``in-progress``, then ``completed`` after a
successful submit. There is no way back from ``completed``.

The response id is minted once when the session is created and reused for
every draft save and the final submit, so repeated calls upsert the same
record.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from app.logic import events
from app.logic.errors import PersistenceError, SessionClosedError
from app.logic.identifiers import new_response_id
from app.logic.kv_store import KeyValueStore
from app.logic.repository_assessments import AssessmentRepository
from app.logic.validation import validate, validate_all
from app.logic.visibility_delta import compute_visibility_delta
from app.logic.visibility_rules import get_visible_questions, visible_question_ids
from app.models.answer_value import tag_answer
from app.models.assessment import (
    Assessment,
    AssessmentResponse,
    CamelModel,
    Question,
    QuestionResponse,
    VisibilityDelta,
    index_responses,
    utc_now_iso,
)
from app.models.question_types import ResponseStatus

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "session:"


class SessionPhase:
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class SessionState(CamelModel):
    response_id: str
    assessment_id: str
    candidate_id: Optional[str] = None
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    responses: List[QuestionResponse] = []
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    status: Optional[str] = None
    current_section_index: int = 0
    violations: Dict[str, List[str]] = {}


class BlockingItem(BaseModel):
    question_id: str
    messages: List[str]


class SubmitResult(BaseModel):
    """Submission verdict shaped as ``{ok, blocking_items}``.

    ``response`` holds the finalized record when ``ok`` is true.
    """

    ok: bool
    blocking_items: List[BlockingItem] = []
    response: Optional[AssessmentResponse] = None

    @property
    def violations(self) -> Dict[str, List[str]]:
        return {item.question_id: item.messages for item in self.blocking_items}


def _has_answer(question: Question, response: Optional[QuestionResponse]) -> bool:
    if response is None:
        return False
    return not tag_answer(question.type, response.value).is_blank


class AssessmentSession:
    def __init__(
        self,
        assessment: Assessment,
        *,
        repository: AssessmentRepository | None = None,
        store: KeyValueStore | None = None,
        candidate_id: Optional[str] = None,
        candidate_name: Optional[str] = None,
        candidate_email: Optional[str] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.assessment = assessment
        self._repository = repository
        self._store = store
        self._key_prefix = key_prefix
        self._clock = clock
        self.state = SessionState(
            response_id=new_response_id(),
            assessment_id=assessment.id,
            candidate_id=candidate_id,
            candidate_name=candidate_name,
            candidate_email=candidate_email,
        )

    @classmethod
    def resume(
        cls,
        assessment: Assessment,
        store: KeyValueStore,
        *,
        repository: AssessmentRepository | None = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], str] = utc_now_iso,
    ) -> "AssessmentSession":
        """Create a session, restoring answers and position from a saved draft.

        A missing or unreadable draft yields a fresh session. A section index
        beyond the current assessment is clamped to the last section.
        """
        session = cls(assessment, repository=repository, store=store, key_prefix=key_prefix, clock=clock)
        data = store.get(session.draft_key)
        if data is None:
            return session
        try:
            state = SessionState.from_storage(data)
        except ValueError:
            logger.warning("session_draft_unreadable assessment_id=%s", assessment.id, exc_info=True)
            return session
        if state.assessment_id != assessment.id:
            logger.warning(
                "session_draft_assessment_mismatch assessment_id=%s draft_assessment_id=%s",
                assessment.id,
                state.assessment_id,
            )
            return session
        last = max(len(assessment.sections) - 1, 0)
        session.state = state.model_copy(
            update={"current_section_index": min(max(state.current_section_index, 0), last)}
        )
        logger.info(
            "session_resumed assessment_id=%s response_id=%s answers=%s",
            assessment.id,
            state.response_id,
            len(state.responses),
        )
        return session

    # Read-only views ---------------------------------------------------

    @property
    def draft_key(self) -> str:
        return f"{self._key_prefix}{self.assessment.id}"

    @property
    def phase(self) -> str:
        if self.state.status is None:
            return SessionPhase.NOT_STARTED
        if self.state.status == ResponseStatus.COMPLETED:
            return SessionPhase.COMPLETED
        return SessionPhase.IN_PROGRESS

    @property
    def current_section_index(self) -> int:
        return self.state.current_section_index

    @property
    def violations(self) -> Dict[str, List[str]]:
        return dict(self.state.violations)

    def answers(self) -> Dict[str, QuestionResponse]:
        return index_responses(self.state.responses)

    def visible_questions(self, section_index: Optional[int] = None) -> List[Question]:
        """Visible questions of one section, or of the whole assessment when no index is given."""
        visible = get_visible_questions(self.assessment, self.state.responses)
        if section_index is None:
            return visible
        section = self._section(section_index)
        section_ids = {q.id for q in section.questions}
        return [q for q in visible if q.id in section_ids]

    def to_response(self) -> AssessmentResponse:
        """Build the AssessmentResponse record for the current state."""
        return self._record_for(self.state)

    def _record_for(self, state: SessionState) -> AssessmentResponse:
        return AssessmentResponse(
            id=state.response_id,
            assessment_id=state.assessment_id,
            candidate_id=state.candidate_id,
            candidate_name=state.candidate_name,
            candidate_email=state.candidate_email,
            responses=list(state.responses),
            started_at=state.started_at or self._clock(),
            completed_at=state.completed_at,
            status=state.status or ResponseStatus.IN_PROGRESS,
            current_section_index=state.current_section_index,
        )

    # Internal helpers --------------------------------------------------

    def _section(self, index: int):
        if not 0 <= index < len(self.assessment.sections):
            raise IndexError(f"section index {index} out of range")
        return self.assessment.sections[index]

    def _ensure_open(self, op: str) -> None:
        if self.phase == SessionPhase.COMPLETED:
            logger.warning("session_closed op=%s response_id=%s", op, self.state.response_id)
            raise SessionClosedError(f"cannot {op}: response {self.state.response_id} is completed")

    def _started(self, state: SessionState) -> SessionState:
        if state.status is not None:
            return state
        return state.model_copy(update={"status": ResponseStatus.IN_PROGRESS, "started_at": self._clock()})

    def _commit_state(self, state: SessionState) -> None:
        newly_started = self.state.status is None and state.status is not None
        self.state = state
        if newly_started:
            logger.info(
                "session_started assessment_id=%s response_id=%s",
                self.assessment.id,
                self.state.response_id,
            )

    def _start_if_needed(self) -> None:
        self._commit_state(self._started(self.state))

    def _replace_answers(self, responses: List[QuestionResponse], question_id: str) -> VisibilityDelta:
        before = visible_question_ids(self.assessment, self.state.responses)
        violations = {k: v for k, v in self.state.violations.items() if k != question_id}
        self.state = self.state.model_copy(update={"responses": responses, "violations": violations})
        after = visible_question_ids(self.assessment, self.state.responses)
        by_question = self.answers()

        def has_answer(qid: str) -> bool:
            question = self.assessment.find_question(qid)
            return question is not None and _has_answer(question, by_question.get(qid))

        return compute_visibility_delta(before, after, has_answer)

    # Answers -----------------------------------------------------------

    def update_response(self, question_id: str, value: Any) -> VisibilityDelta:
        """Record an answer, replacing any earlier answer to the same question.

        Clears the stored violations for that question and returns which
        questions became visible or hidden as a result. Answers to questions
        that become hidden are kept; they are listed in ``suppressed_answers``.
        """
        self._ensure_open("update a response")
        if self.assessment.find_question(question_id) is None:
            logger.info("session_unknown_question question_id=%s", question_id)
            return VisibilityDelta()
        if value is None:
            return self.clear_response(question_id)
        self._start_if_needed()
        entry = QuestionResponse(question_id=question_id, value=value, timestamp=self._clock())
        responses: List[QuestionResponse] = []
        replaced = False
        for item in self.state.responses:
            if item.question_id == question_id:
                responses.append(entry)
                replaced = True
            else:
                responses.append(item)
        if not replaced:
            responses.append(entry)
        return self._replace_answers(responses, question_id)

    def clear_response(self, question_id: str) -> VisibilityDelta:
        self._ensure_open("clear a response")
        responses = [item for item in self.state.responses if item.question_id != question_id]
        if len(responses) == len(self.state.responses):
            return VisibilityDelta()
        return self._replace_answers(responses, question_id)

    # Validation and navigation -----------------------------------------

    def validate_section(self, index: Optional[int] = None) -> bool:
        """Validate the visible questions of a section and record violations.

        Required questions with no answer at all are violations too.
        """
        section_index = self.state.current_section_index if index is None else index
        section = self._section(section_index)
        by_question = self.answers()
        found: Dict[str, List[str]] = {}
        for question in self.visible_questions(section_index):
            errors = validate(question, by_question.get(question.id))
            if errors:
                found[question.id] = errors
        section_ids = {q.id for q in section.questions}
        violations = {k: v for k, v in self.state.violations.items() if k not in section_ids}
        violations.update(found)
        self.state = self.state.model_copy(update={"violations": violations})
        logger.debug(
            "session_validate_section index=%s invalid=%s",
            section_index,
            sorted(found),
        )
        return not found

    def advance_section(self) -> bool:
        """Move to the next section if the current one validates.

        Returns True only when the index actually moved.
        """
        if not self.validate_section():
            return False
        index = self.state.current_section_index
        if index >= len(self.assessment.sections) - 1:
            return False
        self.state = self.state.model_copy(update={"current_section_index": index + 1})
        return True

    def retreat_section(self) -> bool:
        index = self.state.current_section_index
        if index <= 0:
            return False
        self.state = self.state.model_copy(update={"current_section_index": index - 1})
        return True

    # Progress ----------------------------------------------------------

    def _progress(self, questions: List[Question]) -> float:
        if not questions:
            return 0.0
        by_question = self.answers()
        answered = sum(1 for q in questions if _has_answer(q, by_question.get(q.id)))
        return answered / len(questions) * 100

    def compute_progress(self) -> float:
        """Percentage of visible questions holding a non-empty answer."""
        return self._progress(self.visible_questions())

    def compute_section_progress(self, index: int) -> float:
        return self._progress(self.visible_questions(index))

    # Persistence -------------------------------------------------------

    def save_draft(self) -> AssessmentResponse:
        """Persist the current answers and position with status in-progress.

        Allowed whatever the validation state. Writes the draft cache when a
        store was injected and posts the record when a repository was. The
        repository is written before the draft cache and the session state
        changes only after both writes succeed, so a PersistenceError
        propagates and leaves the session and its cached draft untouched.
        """
        self._ensure_open("save a draft")
        pending = self._started(self.state)
        record = self._record_for(pending)
        if self._repository is not None:
            record = self._repository.post_response(self.assessment.id, record)
        if self._store is not None:
            self._store.set(self.draft_key, pending.to_storage())
        self._commit_state(pending)
        if self._repository is not None:
            events.publish(
                events.RESPONSE_SAVED,
                {"assessment_id": self.assessment.id, "response_id": record.id, "status": record.status},
            )
        events.publish(events.DRAFT_SAVED, {"scope": "session", "key": self.draft_key})
        return record

    def submit(self) -> SubmitResult:
        """Validate the whole assessment and finalize the response.

        Only visible questions are validated. On violations the verdict is
        not ok, violations are recorded on the session and status does not
        change. On success the record is marked completed and posted; if the
        repository fails the completion is rolled back and PersistenceError
        propagates so the candidate can retry. A session that is already
        completed returns its record without writing again.
        """
        if self.phase == SessionPhase.COMPLETED:
            logger.info("session_submit_repeat response_id=%s", self.state.response_id)
            return SubmitResult(ok=True, response=self.to_response())

        violations = validate_all(self.assessment, self.state.responses)
        if violations:
            self.state = self.state.model_copy(update={"violations": violations})
            logger.info(
                "session_submit_rejected response_id=%s invalid=%s",
                self.state.response_id,
                sorted(violations),
            )
            return SubmitResult(
                ok=False,
                blocking_items=[
                    BlockingItem(question_id=qid, messages=messages)
                    for qid, messages in violations.items()
                ],
            )

        self._start_if_needed()
        previous = self.state
        self.state = self.state.model_copy(
            update={
                "status": ResponseStatus.COMPLETED,
                "completed_at": self._clock(),
                "violations": {},
            }
        )
        record = self.to_response()
        if self._repository is not None:
            try:
                record = self._repository.post_response(self.assessment.id, record)
            except PersistenceError:
                self.state = previous
                logger.warning("session_submit_rolled_back response_id=%s", previous.response_id)
                raise
        if self._store is not None:
            self._store.clear(self.draft_key)
        events.publish(
            events.RESPONSE_SUBMITTED,
            {"assessment_id": self.assessment.id, "response_id": record.id},
        )
        logger.info("session_submitted assessment_id=%s response_id=%s", self.assessment.id, record.id)
        return SubmitResult(ok=True, response=record)


__all__ = [
    "SessionPhase",
    "SessionState",
    "BlockingItem",
    "SubmitResult",
    "AssessmentSession",
]
