"""Question type, operator and validation-message tables.

Provides simple constants containers instead of Enums, matching the JSON
tokens used on the wire. The tables here carry no behaviour; they are read
by the validation engine, the visibility engine and the builder.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Tuple


class QuestionType:
    SINGLE_CHOICE = "single-choice"
    MULTI_CHOICE = "multi-choice"
    SHORT_TEXT = "short-text"
    LONG_TEXT = "long-text"
    NUMERIC = "numeric"
    FILE_UPLOAD = "file-upload"

    ALL: Tuple[str, ...] = (
        SINGLE_CHOICE,
        MULTI_CHOICE,
        SHORT_TEXT,
        LONG_TEXT,
        NUMERIC,
        FILE_UPLOAD,
    )
    CHOICE_TYPES: FrozenSet[str] = frozenset({SINGLE_CHOICE, MULTI_CHOICE})


class ConditionalOperator:
    EQUALS = "equals"
    NOT_EQUALS = "not-equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater-than"
    LESS_THAN = "less-than"

    ALL: Tuple[str, ...] = (EQUALS, NOT_EQUALS, CONTAINS, GREATER_THAN, LESS_THAN)


class ResponseStatus:
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    ALL: Tuple[str, ...] = (IN_PROGRESS, COMPLETED, ABANDONED)


# Validation rule fields the builder may set for each question type. The
# validation engine ignores any field outside this table.
APPLICABLE_VALIDATION_FIELDS: Dict[str, Tuple[str, ...]] = {
    QuestionType.SINGLE_CHOICE: ("required",),
    QuestionType.MULTI_CHOICE: ("required", "min_length", "max_length"),
    QuestionType.SHORT_TEXT: ("required", "min_length", "max_length", "pattern"),
    QuestionType.LONG_TEXT: ("required", "min_length", "max_length"),
    QuestionType.NUMERIC: ("required", "min", "max"),
    QuestionType.FILE_UPLOAD: ("required",),
}

QUESTION_TYPE_CONFIG: Dict[str, Dict[str, object]] = {
    QuestionType.SINGLE_CHOICE: {
        "label": "Single Choice",
        "description": "Select one option from multiple choices",
        "has_options": True,
    },
    QuestionType.MULTI_CHOICE: {
        "label": "Multiple Choice",
        "description": "Select multiple options from choices",
        "has_options": True,
    },
    QuestionType.SHORT_TEXT: {
        "label": "Short Text",
        "description": "Brief text response",
        "has_options": False,
    },
    QuestionType.LONG_TEXT: {
        "label": "Long Text",
        "description": "Detailed text response",
        "has_options": False,
    },
    QuestionType.NUMERIC: {
        "label": "Numeric",
        "description": "Number input with range validation",
        "has_options": False,
    },
    QuestionType.FILE_UPLOAD: {
        "label": "File Upload",
        "description": "Upload a file",
        "has_options": False,
    },
}

CONDITIONAL_OPERATORS: Dict[str, Dict[str, str]] = {
    ConditionalOperator.EQUALS: {"label": "Equals", "symbol": "="},
    ConditionalOperator.NOT_EQUALS: {"label": "Not Equals", "symbol": "≠"},
    ConditionalOperator.CONTAINS: {"label": "Contains", "symbol": "⊃"},
    ConditionalOperator.GREATER_THAN: {"label": "Greater Than", "symbol": ">"},
    ConditionalOperator.LESS_THAN: {"label": "Less Than", "symbol": "<"},
}

VALIDATION_MESSAGES: Dict[str, str] = {
    "required": "This field is required",
    "min_length": "Minimum length is {min} characters",
    "max_length": "Maximum length is {max} characters",
    "min": "Minimum value is {min}",
    "max": "Maximum value is {max}",
    "pattern": "Invalid format",
}


def applicable_fields(question_type: str) -> Tuple[str, ...]:
    """Return the validation fields that apply to ``question_type``.

    Unknown types only support ``required``.
    """
    return APPLICABLE_VALIDATION_FIELDS.get(question_type, ("required",))


def has_options(question_type: str) -> bool:
    return bool(QUESTION_TYPE_CONFIG.get(question_type, {}).get("has_options"))


__all__ = [
    "QuestionType",
    "ConditionalOperator",
    "ResponseStatus",
    "APPLICABLE_VALIDATION_FIELDS",
    "QUESTION_TYPE_CONFIG",
    "CONDITIONAL_OPERATORS",
    "VALIDATION_MESSAGES",
    "applicable_fields",
    "has_options",
]
