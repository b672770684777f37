"""Helpers to compute visibility deltas and suppressed answers.

Exposes a single function that computes now_visible, now_hidden, and the list
of suppressed answers using a caller-provided check for answer existence.
"""

from __future__ import annotations

from typing import Callable, Iterable

from app.models.assessment import VisibilityDelta


def compute_visibility_delta(
    pre_visible: Iterable[str],
    post_visible: Iterable[str],
    has_answer: Callable[[str], bool],
) -> VisibilityDelta:
    """Compute the visibility change caused by one answer update.

    - now_visible: questions in post but not in pre
    - now_hidden: questions in pre but not in post
    - suppressed_answers: subset of now_hidden that still hold an answer

    Ids are returned sorted so repeated calls with equal input compare equal.
    """
    pre_set = {str(qid) for qid in pre_visible if qid}
    post_set = {str(qid) for qid in post_visible if qid}

    now_visible = sorted(post_set - pre_set)
    now_hidden = sorted(pre_set - post_set)
    suppressed = [qid for qid in now_hidden if has_answer(qid)]
    return VisibilityDelta(
        now_visible=now_visible,
        now_hidden=now_hidden,
        suppressed_answers=suppressed,
    )


__all__ = ["compute_visibility_delta"]
