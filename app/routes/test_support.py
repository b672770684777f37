"""Test support routes.

Provides test-only endpoints used by functional tests to reset in-memory
state and to observe buffered domain events.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response
import logging

from app.logic import events as _events

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/__test__/reset-state", summary="Test-only reset state")
def reset_state() -> Response:
    """Clear the domain event buffer for a clean test precondition.

    Returns 204 with no body.
    """
    _events.EVENT_BUFFER.clear()
    logger.info("test_state_reset")
    return Response(status_code=204)


@router.get("/__test__/events", summary="Test-only events feed")
def get_test_events():
    """Expose buffered domain events for assertions.

    Does not clear the buffer; returns a JSON array of event objects.
    """
    events = _events.get_buffered_events(clear=False)
    return JSONResponse(events, status_code=200, media_type="application/json")


__all__ = ["router", "reset_state", "get_test_events"]
