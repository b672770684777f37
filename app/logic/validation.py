"""Type-aware validation of candidate answers.

``validate`` checks one answer against its question's ValidationRule and
returns every violated constraint as a human-readable message. Only the
rule fields applicable to the question type are consulted; anything else on
the rule is ignored.

``validate_all`` runs the same check across an assessment. Questions hidden
by a conditional rule are skipped unless ``include_hidden`` is set, because
a candidate cannot answer a question they are not shown.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from app.models.answer_value import ChoicesAnswer, NumberAnswer, TextAnswer, tag_answer
from app.models.assessment import (
    Assessment,
    Question,
    QuestionResponse,
    ResponsesLike,
    ValidationRule,
    index_responses,
    sanitize_validation,
)
from app.models.question_types import VALIDATION_MESSAGES
from app.logic.visibility_rules import visible_question_ids

logger = logging.getLogger(__name__)

REQUIRED = "required"


def _check_length(rule: ValidationRule, length: int) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    if rule.min_length is not None and length < rule.min_length:
        found.append(("min_length", VALIDATION_MESSAGES["min_length"].format(min=rule.min_length)))
    if rule.max_length is not None and length > rule.max_length:
        found.append(("max_length", VALIDATION_MESSAGES["max_length"].format(max=rule.max_length)))
    return found


def _check_pattern(question_id: str, pattern: str, text: str) -> List[Tuple[str, str]]:
    try:
        matched = re.search(pattern, text) is not None
    except re.error:
        # Unusable pattern keeps the question invalid until the editor fixes it
        logger.warning("validation_pattern_invalid question_id=%s pattern=%r", question_id, pattern)
        matched = False
    if matched:
        return []
    return [("pattern", VALIDATION_MESSAGES["pattern"])]


def _check_range(rule: ValidationRule, number: float) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    if rule.min is not None and number < rule.min:
        found.append(("min", VALIDATION_MESSAGES["min"].format(min=rule.min)))
    if rule.max is not None and number > rule.max:
        found.append(("max", VALIDATION_MESSAGES["max"].format(max=rule.max)))
    return found


def validate(question: Question, response: Optional[QuestionResponse]) -> List[str]:
    """Validate a single answer; an empty list means the answer is valid.

    Order of checks:
    1. required: absent, blank string or empty list fails. When no value is
       present at all the remaining checks are skipped.
    2. text: min/max length on characters, then pattern (unanchored search).
    3. number: inclusive min/max.
    4. list: min/max length on element count.
    File answers are checked for presence only.
    """
    rule = sanitize_validation(question.type, question.validation)
    if rule is None:
        return []
    answer = tag_answer(question.type, response.value if response is not None else None)

    found: List[Tuple[str, str]] = []
    if rule.required and answer.is_blank:
        found.append((REQUIRED, VALIDATION_MESSAGES["required"]))
    if answer.is_empty:
        return [message for _code, message in found]

    if isinstance(answer, TextAnswer):
        found.extend(_check_length(rule, len(answer.text)))
        if rule.pattern:
            found.extend(_check_pattern(question.id, rule.pattern, answer.text))
    elif isinstance(answer, NumberAnswer):
        found.extend(_check_range(rule, answer.number))
    elif isinstance(answer, ChoicesAnswer):
        found.extend(_check_length(rule, len(answer.items)))

    messages: List[str] = []
    for code, message in found:
        if code != REQUIRED and rule.custom_message:
            message = rule.custom_message
        if message not in messages:
            messages.append(message)
    return messages


def validate_all(
    assessment: Assessment,
    responses: ResponsesLike,
    *,
    include_hidden: bool = False,
) -> Dict[str, List[str]]:
    """Validate every question in the assessment.

    Returns a mapping of question_id -> violations containing only questions
    that failed. Hidden questions are skipped unless ``include_hidden``.
    """
    by_question = index_responses(responses)
    visible = None if include_hidden else visible_question_ids(assessment, by_question)
    violations: Dict[str, List[str]] = {}
    for _section, question in assessment.iter_questions():
        if visible is not None and question.id not in visible:
            continue
        errors = validate(question, by_question.get(question.id))
        if errors:
            violations[question.id] = errors
    return violations


__all__ = ["validate", "validate_all"]
