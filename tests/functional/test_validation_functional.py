"""Functional tests for answer validation.

Covers the per-type checks of ``validate`` (required, length, pattern,
range, list size), message customisation, and the visibility-aware scope of
``validate_all``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from app.logic.validation import validate, validate_all
from app.models.assessment import Assessment, Question, QuestionResponse
from app.models.question_types import QuestionType

TS = "2024-01-01T00:00:00.000Z"


def _question(qtype: str, validation: Optional[Dict[str, Any]] = None, **extra: Any) -> Question:
    data: Dict[str, Any] = {"id": extra.pop("id", "q1"), "type": qtype, "text": "Question"}
    if qtype in QuestionType.CHOICE_TYPES:
        data["options"] = ["A", "B", "C", "D"]
    if validation is not None:
        data["validation"] = validation
    data.update(extra)
    return Question.model_validate(data)


def _answer(value: Any, question_id: str = "q1") -> QuestionResponse:
    return QuestionResponse(question_id=question_id, value=value, timestamp=TS)


def test_required_question_without_answer_reports_required() -> None:
    q = _question(QuestionType.SHORT_TEXT, {"required": True, "minLength": 5})
    assert validate(q, None) == ["This field is required"]


def test_optional_question_without_answer_is_valid() -> None:
    q = _question(QuestionType.SHORT_TEXT, {"minLength": 5})
    assert validate(q, None) == []
    assert validate(q, _answer("")) == []


def test_question_without_rule_is_always_valid() -> None:
    q = _question(QuestionType.LONG_TEXT)
    assert validate(q, None) == []
    assert validate(q, _answer("anything")) == []


def test_whitespace_only_text_fails_required_and_still_runs_length_checks() -> None:
    q = _question(QuestionType.SHORT_TEXT, {"required": True, "minLength": 5})
    assert validate(q, _answer("   ")) == [
        "This field is required",
        "Minimum length is 5 characters",
    ]


def test_text_length_bounds() -> None:
    q = _question(QuestionType.SHORT_TEXT, {"minLength": 3, "maxLength": 5})
    assert validate(q, _answer("ab")) == ["Minimum length is 3 characters"]
    assert validate(q, _answer("abcdef")) == ["Maximum length is 5 characters"]
    assert validate(q, _answer("abcd")) == []


def test_long_text_ignores_pattern() -> None:
    q = _question(QuestionType.LONG_TEXT, {"pattern": "^x+$"})
    assert validate(q, _answer("no match here")) == []


def test_pattern_is_an_unanchored_search() -> None:
    q = _question(QuestionType.SHORT_TEXT, {"pattern": "[0-9]{3}"})
    assert validate(q, _answer("call 555 now")) == []
    assert validate(q, _answer("no digits")) == ["Invalid format"]


def test_invalid_pattern_reports_invalid_format(caplog: pytest.LogCaptureFixture) -> None:
    q = _question(QuestionType.SHORT_TEXT, {"pattern": "([a-z"})
    with caplog.at_level("WARNING"):
        assert validate(q, _answer("abc")) == ["Invalid format"]
    assert any("validation_pattern_invalid" in r.getMessage() for r in caplog.records)


def test_numeric_zero_counts_as_an_answer() -> None:
    q = _question(QuestionType.NUMERIC, {"required": True, "min": 0, "max": 20})
    assert validate(q, _answer(0)) == []


def test_numeric_range_is_inclusive() -> None:
    q = _question(QuestionType.NUMERIC, {"min": 1, "max": 10})
    assert validate(q, _answer(1)) == []
    assert validate(q, _answer(10)) == []
    assert validate(q, _answer(0)) == ["Minimum value is 1"]
    assert validate(q, _answer(10.5)) == ["Maximum value is 10"]


def test_required_numeric_with_range() -> None:
    q = _question(QuestionType.NUMERIC, {"required": True, "min": 0, "max": 100})
    assert validate(q, _answer(150)) == ["Maximum value is 100"]
    assert validate(q, _answer(50)) == []
    assert validate(q, None) == ["This field is required"]


def test_multi_choice_length_counts_selected_items() -> None:
    q = _question(QuestionType.MULTI_CHOICE, {"required": True, "minLength": 2, "maxLength": 3})
    assert validate(q, _answer([])) == ["This field is required"]
    assert validate(q, _answer(["A"])) == ["Minimum length is 2 characters"]
    assert validate(q, _answer(["A", "B", "C", "D"])) == ["Maximum length is 3 characters"]
    assert validate(q, _answer(["A", "B"])) == []


def test_single_choice_ignores_inapplicable_rule_fields() -> None:
    q = _question(QuestionType.SINGLE_CHOICE, {"required": True, "minLength": 10, "pattern": "^Z$"})
    assert validate(q, _answer("A")) == []


def test_file_upload_checks_presence_only() -> None:
    q = _question(QuestionType.FILE_UPLOAD, {"required": True})
    assert validate(q, _answer({"name": "cv.pdf", "size": 1024})) == []
    assert validate(q, _answer("")) == ["This field is required"]


def test_custom_message_replaces_non_required_messages_once() -> None:
    q = _question(
        QuestionType.SHORT_TEXT,
        {"minLength": 10, "pattern": "^[0-9]+$", "customMessage": "Enter a 10 digit number"},
    )
    assert validate(q, _answer("abc")) == ["Enter a 10 digit number"]


def test_custom_message_does_not_replace_required() -> None:
    q = _question(QuestionType.SHORT_TEXT, {"required": True, "customMessage": "Custom"})
    assert validate(q, None) == ["This field is required"]


def _gated_assessment() -> Assessment:
    return Assessment.model_validate(
        {
            "id": "a1",
            "jobId": "job-1",
            "title": "Gated",
            "createdAt": TS,
            "updatedAt": TS,
            "sections": [
                {
                    "id": "s1",
                    "title": "Only",
                    "questions": [
                        {
                            "id": "has_portfolio",
                            "type": QuestionType.SINGLE_CHOICE,
                            "text": "Do you have a portfolio?",
                            "options": ["Yes", "No"],
                            "validation": {"required": True},
                            "order": 0,
                        },
                        {
                            "id": "portfolio_url",
                            "type": QuestionType.SHORT_TEXT,
                            "text": "Portfolio URL",
                            "validation": {"required": True},
                            "conditional": {
                                "questionId": "has_portfolio",
                                "operator": "equals",
                                "value": "Yes",
                            },
                            "order": 1,
                        },
                    ],
                }
            ],
        }
    )


def test_validate_all_skips_hidden_questions() -> None:
    assessment = _gated_assessment()
    responses = [_answer("No", "has_portfolio")]
    assert validate_all(assessment, responses) == {}


def test_validate_all_reports_visible_required_questions() -> None:
    assessment = _gated_assessment()
    responses = [_answer("Yes", "has_portfolio")]
    assert validate_all(assessment, responses) == {"portfolio_url": ["This field is required"]}


def test_validate_all_can_include_hidden_questions() -> None:
    assessment = _gated_assessment()
    responses = [_answer("No", "has_portfolio")]
    assert validate_all(assessment, responses, include_hidden=True) == {
        "portfolio_url": ["This field is required"]
    }


def test_validate_all_accepts_mapping_of_responses() -> None:
    assessment = _gated_assessment()
    by_id = {"has_portfolio": _answer("Yes", "has_portfolio"), "portfolio_url": _answer("x", "portfolio_url")}
    assert validate_all(assessment, by_id) == {}
