"""Domain event constants and publisher.

Defines event type constants and a simple publish() callable used by
the builder save, draft and submission flows.
"""

from __future__ import annotations

from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

ASSESSMENT_SAVED = "assessment.saved"
RESPONSE_SAVED = "response.saved"
RESPONSE_SUBMITTED = "response.submitted"
DRAFT_SAVED = "draft.saved"


# In-memory buffer for domain events (test-only visibility)
EVENT_BUFFER: List[Dict[str, Any]] = []


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event.

    Events are logged for observability and buffered in-process.
    """
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    EVENT_BUFFER.append({"type": event_type, "payload": payload})


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    events = list(EVENT_BUFFER)
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "ASSESSMENT_SAVED",
    "RESPONSE_SAVED",
    "RESPONSE_SUBMITTED",
    "DRAFT_SAVED",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]
