"""HTTP contract tests for the assessment API.

Exercises the routes in-process with ``fastapi.testclient.TestClient`` and
checks payload shapes against the JSON Schema generated from the pydantic
models.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Dict

import jsonschema
import pytest
from fastapi.testclient import TestClient

from app.logic.errors import PersistenceError
from app.main import create_app
from app.models.assessment import Assessment, AssessmentResponse
from app.routes.dependencies import get_repository

ASSESSMENT_SCHEMA = Assessment.model_json_schema(by_alias=True)
RESPONSE_SCHEMA = AssessmentResponse.model_json_schema(by_alias=True)


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


def _body() -> Dict[str, Any]:
    return {
        "title": "Backend Engineer Assessment",
        "description": "Screening",
        "sections": [
            {
                "id": "s1",
                "title": "Basics",
                "order": 0,
                "questions": [
                    {
                        "id": "relocate",
                        "type": "single-choice",
                        "text": "Willing to relocate?",
                        "options": ["Yes", "No"],
                        "validation": {"required": True},
                        "order": 0,
                    },
                    {
                        "id": "city",
                        "type": "short-text",
                        "text": "Preferred city",
                        "validation": {"required": True, "maxLength": 40},
                        "conditional": {"questionId": "relocate", "operator": "equals", "value": "Yes"},
                        "order": 1,
                    },
                    {
                        "id": "years",
                        "type": "numeric",
                        "text": "Years of experience",
                        "validation": {"min": 0, "max": 50},
                        "order": 2,
                    },
                ],
            }
        ],
    }


def _put(client: TestClient, job_id: str = "job-7") -> Dict[str, Any]:
    resp = client.put(f"/api/v1/assessments/{job_id}", json=_body())
    assert resp.status_code in (200, 201), resp.text
    return resp.json()


def _answer(question_id: str, value: Any) -> Dict[str, Any]:
    return {"questionId": question_id, "value": value, "timestamp": "2024-01-01T00:00:00.000Z"}


def test_health_reports_database(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "db": True}


def test_request_id_is_echoed_or_generated(client: TestClient) -> None:
    assert client.get("/health", headers={"X-Request-Id": "abc-123"}).headers["x-request-id"] == "abc-123"
    assert client.get("/health").headers.get("x-request-id")


def test_put_creates_then_replaces(client: TestClient) -> None:
    created = client.put("/api/v1/assessments/job-7", json=_body())
    assert created.status_code == 201
    assert created.headers["location"] == "/api/v1/assessments/job-7"
    payload = created.json()
    jsonschema.validate(payload, ASSESSMENT_SCHEMA)
    assert payload["jobId"] == "job-7"
    assert payload["createdAt"] and payload["updatedAt"]

    body = _body()
    body["title"] = "Renamed"
    replaced = client.put("/api/v1/assessments/job-7", json=body)
    assert replaced.status_code == 200
    assert replaced.json()["id"] == payload["id"]
    assert replaced.json()["createdAt"] == payload["createdAt"]
    assert replaced.json()["title"] == "Renamed"


def test_put_renumbers_question_order(client: TestClient) -> None:
    body = _body()
    for question, order in zip(body["sections"][0]["questions"], (5, 9, 7)):
        question["order"] = order
    resp = client.put("/api/v1/assessments/job-8", json=body)
    questions = resp.json()["sections"][0]["questions"]
    assert [(q["id"], q["order"]) for q in questions] == [("relocate", 0), ("years", 1), ("city", 2)]


def test_get_and_list_assessments(client: TestClient) -> None:
    stored = _put(client)
    got = client.get("/api/v1/assessments/job-7")
    assert got.status_code == 200
    assert got.json() == stored
    listed = client.get("/api/v1/assessments").json()
    assert [a["jobId"] for a in listed] == ["job-7"]


def test_missing_assessment_is_problem_json(client: TestClient) -> None:
    resp = client.get("/api/v1/assessments/nope")
    assert resp.status_code == 404
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == "assessment_not_found"


def test_invalid_definition_is_422_problem(client: TestClient) -> None:
    body = _body()
    body["sections"][0]["questions"][0]["options"] = []
    resp = client.put("/api/v1/assessments/job-7", json=body)
    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == "request_validation_failed"


def test_evaluate_reports_visibility_and_violations(client: TestClient) -> None:
    _put(client)
    resp = client.post("/api/v1/assessments/job-7/evaluate", json={"answers": {"relocate": "Yes"}})
    assert resp.status_code == 200
    result = resp.json()
    assert result["visibleQuestionIds"] == ["relocate", "city", "years"]
    assert result["hiddenQuestionIds"] == []
    assert result["violations"] == {"city": ["This field is required"]}
    assert result["valid"] is False

    result = client.post(
        "/api/v1/assessments/job-7/evaluate", json={"answers": {"relocate": "No", "years": 0}}
    ).json()
    assert result["hiddenQuestionIds"] == ["city"]
    assert result["valid"] is True
    assert result["progress"] == 100


def test_post_draft_and_completed_responses(client: TestClient) -> None:
    assessment = _put(client)
    url = f"/api/v1/assessments/{assessment['id']}/responses"
    draft = {"id": "resp-1", "candidateName": "Ada", "status": "in-progress", "responses": [_answer("relocate", "Yes")]}
    resp = client.post(url, json=draft)
    assert resp.status_code == 201
    jsonschema.validate(resp.json(), RESPONSE_SCHEMA)
    assert resp.json()["assessmentId"] == assessment["id"]

    # Stored as sent: rule checks run in the candidate session, not here
    complete = {**draft, "status": "completed"}
    accepted = client.post(url, json=complete)
    assert accepted.status_code == 201
    assert accepted.json()["completedAt"]

    listed = client.get(url).json()
    assert len(listed) == 1 and listed[0]["status"] == "completed"

    event_types = [e["type"] for e in client.get("/__test__/events").json()]
    assert event_types[-2:] == ["response.saved", "response.submitted"]


def test_completed_response_cannot_be_reopened(client: TestClient) -> None:
    assessment = _put(client)
    url = f"/api/v1/assessments/{assessment['id']}/responses"
    done = {
        "id": "r1",
        "status": "completed",
        "completedAt": "2024-01-01T10:05:00.000Z",
        "responses": [_answer("relocate", "No")],
    }
    first = client.post(url, json=done)
    assert first.status_code == 201

    reopened = client.post(url, json={"id": "r1", "status": "in-progress", "responses": []})
    assert reopened.status_code == 409
    assert reopened.headers["content-type"].startswith("application/problem+json")
    assert reopened.json()["code"] == "response_completed"

    repeated = client.post(url, json={**done, "responses": [_answer("relocate", "Yes")]})
    assert repeated.status_code == 200
    assert repeated.json() == first.json()

    listed = client.get(url).json()
    assert [(r["id"], r["status"], r["completedAt"]) for r in listed] == [
        ("r1", "completed", "2024-01-01T10:05:00.000Z")
    ]
    event_types = [e["type"] for e in client.get("/__test__/events").json()]
    assert event_types.count("response.submitted") == 1


def test_post_response_for_unknown_assessment_is_404(client: TestClient) -> None:
    resp = client.post("/api/v1/assessments/missing/responses", json={"responses": []})
    assert resp.status_code == 404


def test_summary_and_csv_export(client: TestClient) -> None:
    assessment = _put(client)
    url = f"/api/v1/assessments/{assessment['id']}/responses"
    client.post(
        url,
        json={
            "id": "r1",
            "candidateName": "Ada",
            "candidateEmail": "ada@example.com",
            "status": "completed",
            "startedAt": "2024-01-01T10:00:00.000Z",
            "completedAt": "2024-01-01T10:05:00.000Z",
            "responses": [_answer("relocate", "No"), _answer("years", 7)],
        },
    )
    client.post(
        url,
        json={"id": "r2", "status": "in-progress", "startedAt": "2024-01-02T10:00:00.000Z", "responses": []},
    )

    summary = client.get(f"{url}/summary").json()
    assert summary["total_responses"] == 2
    assert summary["completed_responses"] == 1
    assert summary["in_progress_responses"] == 1
    assert summary["completion_rate"] == 50
    assert summary["average_completion_seconds"] == 300
    counts = {q["question_id"]: q["response_count"] for q in summary["questions"]}
    assert counts == {"relocate": 1, "city": 0, "years": 1}

    export = client.get(f"{url}/export")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "attachment" in export.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(export.content.decode("utf-8"))))
    assert [r["Candidate Name"] for r in rows] == ["Ada", "Anonymous"]
    assert rows[0]["Willing to relocate?"] == "No"
    assert rows[0]["Years of experience"] == "7"
    assert rows[1]["Preferred city"] == ""


def test_persistence_failure_maps_to_503(client: TestClient) -> None:
    class _Down:
        def get_assessment(self, job_id):
            raise PersistenceError("assessment lookup failed", operation="get_assessment")

    client.app.dependency_overrides[get_repository] = lambda: _Down()
    try:
        resp = client.get("/api/v1/assessments/job-7")
    finally:
        client.app.dependency_overrides.clear()
    assert resp.status_code == 503
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.headers["retry-after"] == "1"
    assert resp.json()["retryable"] is True


def test_reset_state_clears_event_buffer(client: TestClient) -> None:
    _put(client)
    assert client.post("/__test__/reset-state").status_code == 204
    assert client.get("/__test__/events").json() == []
