"""Functional tests for the question type and operator tables.

The builder reads these tables for labels, option seeding and rule
filtering, so their contents are pinned here.
"""

from __future__ import annotations

import logging

import pytest

from app.logic.builder import AssessmentBuilder
from app.models.question_types import (
    CONDITIONAL_OPERATORS,
    QUESTION_TYPE_CONFIG,
    ConditionalOperator,
    QuestionType,
    has_options,
)


def test_question_type_config_covers_every_type() -> None:
    assert set(QUESTION_TYPE_CONFIG) == set(QuestionType.ALL)
    assert {t: c["label"] for t, c in QUESTION_TYPE_CONFIG.items()} == {
        "single-choice": "Single Choice",
        "multi-choice": "Multiple Choice",
        "short-text": "Short Text",
        "long-text": "Long Text",
        "numeric": "Numeric",
        "file-upload": "File Upload",
    }
    for config in QUESTION_TYPE_CONFIG.values():
        assert config["description"]


@pytest.mark.parametrize("question_type", sorted(QuestionType.ALL))
def test_has_options_follows_type_config(question_type: str) -> None:
    assert has_options(question_type) is (question_type in QuestionType.CHOICE_TYPES)


def test_has_options_is_false_for_unknown_type() -> None:
    assert has_options("slider") is False


def test_conditional_operators_table() -> None:
    assert CONDITIONAL_OPERATORS == {
        ConditionalOperator.EQUALS: {"label": "Equals", "symbol": "="},
        ConditionalOperator.NOT_EQUALS: {"label": "Not Equals", "symbol": "≠"},
        ConditionalOperator.CONTAINS: {"label": "Contains", "symbol": "⊃"},
        ConditionalOperator.GREATER_THAN: {"label": "Greater Than", "symbol": ">"},
        ConditionalOperator.LESS_THAN: {"label": "Less Than", "symbol": "<"},
    }


def test_rejected_conditional_is_logged_with_operator_label(caplog: pytest.LogCaptureFixture) -> None:
    builder = AssessmentBuilder.from_template("job-1", "Engineer", sample=False)
    section_id = builder.assessment.sections[0].id
    builder.add_question(section_id)
    builder.add_question(section_id)
    first, second = [q.id for q in builder.assessment.sections[0].questions]
    with caplog.at_level(logging.WARNING, logger="app.logic.builder"):
        builder.set_conditional(section_id, first, {"questionId": second, "operator": "greater-than", "value": 3})
    assert "builder_conditional_rejected" in caplog.text
    assert "operator=Greater Than" in caplog.text
