"""Identifier generation for builder entities and response records."""

from __future__ import annotations

import time
import uuid


def generate_id(prefix: str = "id") -> str:
    """Return ``<prefix>-<epoch ms>-<9 random hex chars>``.

    The millisecond timestamp orders ids roughly by creation; the uuid4
    fragment keeps ids unique within the same millisecond.
    """
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def new_response_id() -> str:
    return generate_id("response")


__all__ = ["generate_id", "new_response_id"]
