"""Functional tests for persistence: repository, key-value stores, migrations.

Runs against the file-backed SQLite database prepared by conftest.
"""

from __future__ import annotations

import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError

from app.db.migrations_runner import apply_migrations
from app.logic.errors import PersistenceError
from app.logic.kv_store import InMemoryKeyValueStore, SqlKeyValueStore
from app.logic.repository_assessments import SqlAssessmentRepository
from app.models.assessment import Assessment, AssessmentResponse, QuestionResponse


def test_assessment_storage_round_trip_preserves_content(sample_assessment: Assessment) -> None:
    """Serialising to the storage shape and reloading yields an equal assessment."""
    data = sample_assessment.model_dump()
    first_id = data["sections"][0]["questions"][0]["id"]
    data["sections"][0]["questions"][1]["conditional"] = {
        "question_id": first_id,
        "operator": "equals",
        "value": "Expert (5+ years)",
    }
    assessment = Assessment.model_validate(data)
    assert assessment.sections[0].questions[1].conditional is not None

    payload = json.loads(json.dumps(assessment.to_storage()))
    assert "jobId" in payload and "createdAt" in payload
    assert Assessment.from_storage(payload) == assessment


def test_put_assessment_creates_then_replaces_keeping_identity(sample_assessment: Assessment) -> None:
    repo = SqlAssessmentRepository()
    stored, created = repo.put_assessment("job-1", sample_assessment)
    assert created is True

    replacement = sample_assessment.model_copy(
        update={"id": "other-id", "title": "Second version", "created_at": "2030-01-01T00:00:00.000Z"}
    )
    replaced, created = repo.put_assessment("job-1", replacement)
    assert created is False
    assert replaced.id == stored.id
    assert replaced.created_at == stored.created_at
    assert replaced.title == "Second version"
    assert repo.get_assessment("job-1") == replaced
    assert repo.get_assessment_by_id(stored.id) == replaced
    assert [a.id for a in repo.list_assessments()] == [stored.id]


def test_get_missing_assessment_returns_none() -> None:
    repo = SqlAssessmentRepository()
    assert repo.get_assessment("missing") is None
    assert repo.get_assessment_by_id("missing") is None


def test_post_response_upserts_by_id(sample_assessment: Assessment) -> None:
    repo = SqlAssessmentRepository()
    repo.put_assessment("job-1", sample_assessment)
    question_id = sample_assessment.sections[0].questions[0].id
    draft = AssessmentResponse(
        id="r1",
        assessment_id="ignored",
        responses=[QuestionResponse(question_id=question_id, value="Beginner (0-1 years)", timestamp="t")],
        started_at="2024-01-01T00:00:00.000Z",
    )
    saved = repo.post_response(sample_assessment.id, draft)
    assert saved.assessment_id == sample_assessment.id
    final = saved.model_copy(update={"status": "completed", "completed_at": "2024-01-01T00:10:00.000Z"})
    repo.post_response(sample_assessment.id, final)
    listed = repo.list_responses(sample_assessment.id)
    assert len(listed) == 1
    assert listed[0].status == "completed"


def test_completed_response_is_never_replaced(sample_assessment: Assessment) -> None:
    repo = SqlAssessmentRepository()
    repo.put_assessment("job-1", sample_assessment)
    final = AssessmentResponse(
        id="r1",
        assessment_id=sample_assessment.id,
        status="completed",
        started_at="2024-01-01T00:00:00.000Z",
        completed_at="2024-01-01T00:10:00.000Z",
    )
    repo.post_response(sample_assessment.id, final)

    downgrade = final.model_copy(update={"status": "in-progress", "completed_at": None})
    returned = repo.post_response(sample_assessment.id, downgrade)
    assert returned.status == "completed"
    assert returned.completed_at == "2024-01-01T00:10:00.000Z"

    stored = repo.get_response("r1")
    assert stored is not None
    assert (stored.status, stored.completed_at) == ("completed", "2024-01-01T00:10:00.000Z")
    assert repo.get_response("missing") is None


def test_sql_key_value_store_round_trip() -> None:
    store = SqlKeyValueStore()
    assert store.get("builder:job-1") is None
    store.set("builder:job-1", {"a": 1})
    store.set("builder:job-1", {"a": 2, "nested": {"b": [1, 2]}})
    assert store.get("builder:job-1") == {"a": 2, "nested": {"b": [1, 2]}}
    store.clear("builder:job-1")
    assert store.get("builder:job-1") is None


def test_in_memory_store_does_not_share_mutable_values() -> None:
    store = InMemoryKeyValueStore()
    value = {"items": [1]}
    store.set("k", value)
    value["items"].append(2)
    assert store.get("k") == {"items": [1]}


def test_repository_failures_surface_as_persistence_error(tmp_path) -> None:
    # A database without the schema makes every statement fail
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    repo = SqlAssessmentRepository(engine)
    with pytest.raises(PersistenceError) as excinfo:
        repo.get_assessment("job-1")
    assert excinfo.value.operation == "get_assessment"
    assert isinstance(excinfo.value.__cause__, OperationalError)
    with pytest.raises(PersistenceError):
        SqlKeyValueStore(engine).set("k", {})


def test_migrations_apply_once(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
    assert apply_migrations(engine) == ["001_assessment_core.sql"]
    assert apply_migrations(engine) == []


def test_migrations_skip_rollback_files(tmp_path) -> None:
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_init.sql").write_text("CREATE TABLE t (id INTEGER);", encoding="utf-8")
    (migrations / "001_init_rollback.sql").write_text("DROP TABLE t;", encoding="utf-8")
    engine = create_engine(f"sqlite:///{tmp_path / 'custom.db'}")
    assert apply_migrations(engine, migrations_dir=migrations) == ["001_init.sql"]
