"""FastAPI application package for the assessment service.

This package exposes a small FastAPI application factory. It wires only
cross-cutting middleware (request-id, CORS) and mounts the API routers.
The rule engines, builder and runtime session live in `app/logic/`, the
pydantic models in `app/models/` and route handlers in `app/routes/`.
"""

from __future__ import annotations

from app.main import create_app

__all__ = ["create_app"]
