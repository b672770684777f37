from __future__ import annotations

"""Functional test bootstrap for the assessment service.

Points the app at a file-backed SQLite database under tmp/ and applies the
project migrations once per session, before any test builds a TestClient.
Each test starts with empty tables and an empty domain event buffer.
"""

import os
import pathlib
from typing import Iterator

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Use a file-backed SQLite DB to ensure persistence across connections
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
# Migrations are applied explicitly below, not on app startup
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap() -> Iterator[None]:
    """Session-level bootstrap: apply migrations once for the shared DB."""
    from app.db.base import get_engine, reset_engine
    from app.db.migrations_runner import apply_migrations

    reset_engine()
    apply_migrations(get_engine(os.environ["TEST_DATABASE_URL"]))
    yield
    reset_engine()


@pytest.fixture(autouse=True)
def clean_state() -> Iterator[None]:
    """Empty the data tables and event buffer around each test."""
    from sqlalchemy import text as sql_text

    from app.db.base import get_engine
    from app.logic import events

    def _wipe() -> None:
        with get_engine(os.environ["TEST_DATABASE_URL"]).begin() as conn:
            for table in ("assessment_response", "assessment", "kv_store"):
                conn.execute(sql_text(f"DELETE FROM {table}"))
        events.EVENT_BUFFER.clear()

    _wipe()
    yield
    _wipe()


@pytest.fixture
def sample_assessment():
    from app.logic.templates import create_sample_assessment

    return create_sample_assessment("job-1", "Frontend Engineer")


@pytest.fixture
def memory_store():
    from app.logic.kv_store import InMemoryKeyValueStore

    return InMemoryKeyValueStore()
