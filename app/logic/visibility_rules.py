"""Conditional visibility rule evaluation.

Centralizes the operator semantics used by the runtime, the validation
engine and the preview endpoint to avoid duplication and drift.

A question without a conditional rule is always visible. A question gated
on an unanswered or falsy (numeric 0) prerequisite is hidden.
Operator/value type mismatches evaluate to hidden without raising; an
unknown operator evaluates to visible.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Set

from app.models.answer_value import NumberAnswer, TextAnswer, tag_answer
from app.models.assessment import (
    Assessment,
    ConditionalRule,
    Question,
    ResponsesLike,
    index_responses,
)
from app.models.question_types import ConditionalOperator

logger = logging.getLogger(__name__)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _values_equal(answer_value: Any, rule_value: Any) -> bool:
    """Exact equality for strings and numbers; any other pairing is unequal."""
    if isinstance(answer_value, bool) or isinstance(rule_value, bool):
        return False
    if isinstance(answer_value, (int, float)) and isinstance(rule_value, (int, float)):
        return answer_value == rule_value
    if isinstance(answer_value, str) and isinstance(rule_value, str):
        return answer_value == rule_value
    return False


def evaluate_condition(rule: ConditionalRule, answer_value: Any) -> bool:
    """Return True if ``answer_value`` satisfies ``rule``.

    The caller resolves the prerequisite's stored value; ``None`` means the
    prerequisite has no answer. A falsy prerequisite (empty or numeric 0)
    counts as unanswered.
    """
    answer = tag_answer(None, answer_value)
    if answer.is_empty:
        return False
    if isinstance(answer, NumberAnswer) and answer.number == 0:
        return False

    op = rule.operator
    if op == ConditionalOperator.EQUALS:
        return _values_equal(answer_value, rule.value)
    if op == ConditionalOperator.NOT_EQUALS:
        return not _values_equal(answer_value, rule.value)
    if op == ConditionalOperator.CONTAINS:
        if not isinstance(answer, TextAnswer):
            return False
        return str(rule.value).lower() in answer.text.lower()
    if op in (ConditionalOperator.GREATER_THAN, ConditionalOperator.LESS_THAN):
        if not isinstance(answer, NumberAnswer):
            return False
        target = _as_number(rule.value)
        if target is None:
            return False
        if op == ConditionalOperator.GREATER_THAN:
            return answer.number > target
        return answer.number < target
    logger.debug("visibility_unknown_operator operator=%r question_id=%s", op, rule.question_id)
    return True


def is_visible(question: Question, responses: ResponsesLike) -> bool:
    """Return True if ``question`` should be shown given the current answers."""
    rule = question.conditional
    if rule is None:
        return True
    prerequisite = index_responses(responses).get(rule.question_id)
    if prerequisite is None:
        return False
    return evaluate_condition(rule, prerequisite.value)


def get_visible_questions(assessment: Assessment, responses: ResponsesLike) -> List[Question]:
    """Flatten the assessment and keep visible questions in order.

    A conditional that does not point at a question appearing strictly
    earlier in the flattened order (missing, self or forward reference) is
    treated as hidden.
    """
    by_question = index_responses(responses)
    seen: Set[str] = set()
    visible: List[Question] = []
    for _section, question in assessment.iter_questions():
        rule = question.conditional
        if rule is not None and rule.question_id not in seen:
            logger.debug(
                "visibility_broken_reference question_id=%s prerequisite=%s",
                question.id,
                rule.question_id,
            )
        elif is_visible(question, by_question):
            visible.append(question)
        seen.add(question.id)
    return visible


def visible_question_ids(assessment: Assessment, responses: ResponsesLike) -> Set[str]:
    return {q.id for q in get_visible_questions(assessment, responses)}


__all__ = [
    "evaluate_condition",
    "is_visible",
    "get_visible_questions",
    "visible_question_ids",
]
