"""Pydantic models for assessment definitions and candidate responses.

Attributes are snake_case in Python and camelCase on the wire; every model
accepts either spelling on input. Storage and API payloads are produced by
``to_storage()`` so the JSON shape stays identical everywhere.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.models.question_types import QuestionType, ResponseStatus, applicable_fields, has_options


def utc_now_iso() -> str:
    """Return the current UTC time as RFC3339 with millisecond precision and 'Z'."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_storage(cls, data: Mapping[str, Any]):
        return cls.model_validate(dict(data))


class ValidationRule(CamelModel):
    required: Optional[bool] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    pattern: Optional[str] = None
    custom_message: Optional[str] = None


_RULE_FIELDS = ("required", "min_length", "max_length", "min", "max", "pattern")


def sanitize_validation(question_type: str, rule: ValidationRule | None) -> ValidationRule | None:
    """Return a copy of ``rule`` with fields inapplicable to the type cleared.

    ``custom_message`` is always kept.
    """
    if rule is None:
        return None
    allowed = set(applicable_fields(question_type))
    cleared = {name: None for name in _RULE_FIELDS if name not in allowed and getattr(rule, name) is not None}
    if not cleared:
        return rule
    return rule.model_copy(update=cleared)


class ConditionalRule(CamelModel):
    question_id: str
    # Kept as a free string: unknown operators evaluate as visible.
    operator: str
    value: Union[str, int, float]


class FileHandle(CamelModel):
    """Opaque reference to an uploaded file; only its presence is checked."""

    name: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    ref: Optional[str] = None


# Raw answer shapes accepted on the wire. Order matters for pydantic's smart
# union: exact matches win, so "5" stays a string and 5 stays an int.
AnswerRaw = Union[str, int, float, List[str], FileHandle]


class Question(CamelModel):
    id: str
    type: str
    text: str
    description: Optional[str] = None
    options: Optional[List[str]] = None
    validation: Optional[ValidationRule] = None
    conditional: Optional[ConditionalRule] = None
    order: int = 0

    @field_validator("type")
    @classmethod
    def type_must_be_known(cls, v: str) -> str:
        if v not in QuestionType.ALL:
            raise ValueError(f"type must be one of {list(QuestionType.ALL)}")
        return v

    @model_validator(mode="after")
    def choice_types_need_options(self) -> "Question":
        if has_options(self.type) and not self.options:
            raise ValueError(f"options must be a non-empty list for {self.type} questions")
        return self


class Section(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    questions: List[Question] = []
    order: int = 0


class Assessment(CamelModel):
    id: str
    job_id: str
    title: str
    description: str = ""
    sections: List[Section] = []
    created_at: str
    updated_at: str
    is_active: bool = True

    def iter_questions(self) -> Iterator[Tuple[Section, Question]]:
        """Yield (section, question) pairs in flattened order."""
        for section in self.sections:
            for question in section.questions:
                yield section, question

    def find_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def find_question(self, question_id: str) -> Optional[Question]:
        for _section, question in self.iter_questions():
            if question.id == question_id:
                return question
        return None


class QuestionResponse(CamelModel):
    question_id: str
    value: AnswerRaw
    timestamp: str


class AssessmentResponse(CamelModel):
    id: str
    assessment_id: str
    candidate_id: Optional[str] = None
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    responses: List[QuestionResponse] = []
    started_at: str
    completed_at: Optional[str] = None
    status: str = ResponseStatus.IN_PROGRESS
    current_section_index: int = 0

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        if v not in ResponseStatus.ALL:
            raise ValueError(f"status must be one of {list(ResponseStatus.ALL)}")
        return v

    def response_for(self, question_id: str) -> Optional[QuestionResponse]:
        for item in self.responses:
            if item.question_id == question_id:
                return item
        return None


class VisibilityDelta(BaseModel):
    now_visible: List[str] = []
    now_hidden: List[str] = []
    suppressed_answers: List[str] = []


ResponsesLike = Union[Iterable[QuestionResponse], Mapping[str, QuestionResponse]]


def index_responses(responses: ResponsesLike | None) -> Dict[str, QuestionResponse]:
    """Return a question_id -> QuestionResponse mapping.

    Accepts an existing mapping or any iterable of responses. A later entry
    for the same question replaces an earlier one. A plain dict is returned
    as-is and must not be mutated by callers.
    """
    if responses is None:
        return {}
    if isinstance(responses, dict):
        return responses
    if isinstance(responses, Mapping):
        return dict(responses)
    return {item.question_id: item for item in responses}


__all__ = [
    "utc_now_iso",
    "CamelModel",
    "ValidationRule",
    "sanitize_validation",
    "ConditionalRule",
    "FileHandle",
    "AnswerRaw",
    "Question",
    "Section",
    "Assessment",
    "QuestionResponse",
    "AssessmentResponse",
    "VisibilityDelta",
    "ResponsesLike",
    "index_responses",
]
