"""Tagged answer values.

A stored answer is one of several raw shapes (string, list of strings,
number, file handle). ``tag_answer`` turns the raw value into exactly one
variant so the engines can dispatch on the variant class instead of probing
raw Python types at every call site.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple, Union

from app.models.assessment import FileHandle
from app.models.question_types import QuestionType


class AnswerKind:
    EMPTY = "empty"
    TEXT = "text"
    CHOICES = "choices"
    NUMBER = "number"
    FILE = "file"


@dataclass(frozen=True)
class EmptyAnswer:
    kind: str = AnswerKind.EMPTY

    @property
    def is_empty(self) -> bool:
        return True

    @property
    def is_blank(self) -> bool:
        return True


@dataclass(frozen=True)
class TextAnswer:
    text: str
    kind: str = AnswerKind.TEXT

    @property
    def is_empty(self) -> bool:
        return self.text == ""

    @property
    def is_blank(self) -> bool:
        return self.text.strip() == ""


@dataclass(frozen=True)
class ChoicesAnswer:
    items: Tuple[str, ...]
    kind: str = AnswerKind.CHOICES

    @property
    def is_empty(self) -> bool:
        return len(self.items) == 0

    @property
    def is_blank(self) -> bool:
        return len(self.items) == 0


@dataclass(frozen=True)
class NumberAnswer:
    number: Union[int, float]
    kind: str = AnswerKind.NUMBER

    @property
    def is_empty(self) -> bool:
        return False

    @property
    def is_blank(self) -> bool:
        return False


@dataclass(frozen=True)
class FileAnswer:
    handle: Any
    kind: str = AnswerKind.FILE

    @property
    def is_empty(self) -> bool:
        return False

    @property
    def is_blank(self) -> bool:
        return False


TypedAnswer = Union[EmptyAnswer, TextAnswer, ChoicesAnswer, NumberAnswer, FileAnswer]


def _canonical_bool(value: bool) -> str:
    return "true" if value else "false"


def tag_answer(question_type: str | None, raw: Any) -> TypedAnswer:
    """Classify a raw answer value into a TypedAnswer variant.

    - None -> EmptyAnswer
    - file-upload questions: any non-empty value -> FileAnswer
    - FileHandle or mapping -> FileAnswer
    - bool -> TextAnswer("true"/"false")
    - int/float -> NumberAnswer
    - str -> TextAnswer
    - list/tuple -> ChoicesAnswer (items coerced to str)

    Pass ``question_type=None`` to classify by shape only.
    """
    if raw is None:
        return EmptyAnswer()
    if question_type == QuestionType.FILE_UPLOAD:
        if raw == "" or (isinstance(raw, (list, tuple)) and len(raw) == 0):
            return EmptyAnswer()
        return FileAnswer(handle=raw)
    if isinstance(raw, (FileHandle, dict)):
        return FileAnswer(handle=raw)
    if isinstance(raw, bool):
        return TextAnswer(text=_canonical_bool(raw))
    if isinstance(raw, (int, float)):
        return NumberAnswer(number=raw)
    if isinstance(raw, str):
        return TextAnswer(text=raw)
    if isinstance(raw, (list, tuple)):
        return ChoicesAnswer(items=tuple(str(item) for item in raw))
    return TextAnswer(text=str(raw))


def display_value(raw: Any) -> str:
    """Render a raw answer for tabular output (CSV export)."""
    answer = tag_answer(None, raw)
    if isinstance(answer, EmptyAnswer):
        return ""
    if isinstance(answer, ChoicesAnswer):
        return ", ".join(answer.items)
    if isinstance(answer, FileAnswer):
        handle = answer.handle
        if isinstance(handle, FileHandle):
            return handle.name
        if isinstance(handle, dict):
            return str(handle.get("name", ""))
        return str(handle)
    if isinstance(answer, NumberAnswer):
        number = answer.number
        if isinstance(number, float) and number.is_integer():
            return str(int(number))
        return str(number)
    return answer.text


__all__ = [
    "AnswerKind",
    "EmptyAnswer",
    "TextAnswer",
    "ChoicesAnswer",
    "NumberAnswer",
    "FileAnswer",
    "TypedAnswer",
    "tag_answer",
    "display_value",
]
