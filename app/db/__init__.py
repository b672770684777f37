"""Database bootstrap utilities for the assessment service.

This module exposes convenience imports for engine construction and the
migrations runner that applies SQL files from the project's migrations/
directory. The DB layer does not leak ORM models into route handlers.
"""

from app.db.base import get_engine, reset_engine
from app.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "reset_engine",
    "apply_migrations",
]
