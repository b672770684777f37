"""RFC4180 CSV export of assessment responses.

One row per response, ordered by ``started_at`` then response id. Fixed
candidate columns come first, followed by one column per question in
flattened assessment order, headed by the question text.
"""

from __future__ import annotations

import csv
import io
from typing import Dict, Iterable, List

from app.models.answer_value import display_value
from app.models.assessment import Assessment, AssessmentResponse


HEADER = [
    "Candidate Name",
    "Candidate Email",
    "Status",
    "Started At",
    "Completed At",
]

ANONYMOUS = "Anonymous"


def _question_columns(assessment: Assessment) -> List[str]:
    columns: List[str] = []
    for _section, question in assessment.iter_questions():
        label = question.text
        # Disambiguate repeated question texts so DictWriter keeps every column
        if label in columns or label in HEADER:
            label = f"{label} [{question.id}]"
        columns.append(label)
    return columns


def build_export_csv(assessment: Assessment, responses: Iterable[AssessmentResponse]) -> bytes:
    question_columns = _question_columns(assessment)
    questions = [q for _s, q in assessment.iter_questions()]
    fieldnames = HEADER + question_columns

    rows = sorted(responses, key=lambda r: (r.started_at, r.id))
    buf = io.StringIO(newline="")
    writer = csv.DictWriter(buf, fieldnames=fieldnames)
    writer.writeheader()
    for response in rows:
        row: Dict[str, str] = {
            "Candidate Name": response.candidate_name or ANONYMOUS,
            "Candidate Email": response.candidate_email or "",
            "Status": response.status,
            "Started At": response.started_at,
            "Completed At": response.completed_at or "",
        }
        for column, question in zip(question_columns, questions):
            entry = response.response_for(question.id)
            row[column] = display_value(entry.value) if entry is not None else ""
        writer.writerow(row)
    return buf.getvalue().encode("utf-8")


def export_filename(assessment: Assessment) -> str:
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in assessment.title)
    return f"{safe or 'assessment'}_responses.csv"


__all__ = ["HEADER", "build_export_csv", "export_filename"]
