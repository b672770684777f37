"""Assessment and response data access.

Encapsulates the persistence contract used by the builder, the runtime
session and the HTTP routes so none of them embed SQL:

- get_assessment(job_id) -> Assessment | None
- put_assessment(job_id, assessment) -> (Assessment, created)
- post_response(assessment_id, response) -> AssessmentResponse
- get_response(response_id) -> AssessmentResponse | None

A completed response is final: posting over it returns the stored record
without writing.

Bodies are stored as JSON text; indexed columns are kept alongside for
lookups. SQLAlchemy errors are logged and re-raised as PersistenceError.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Protocol, Tuple

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.db.base import get_engine
from app.logic.errors import PersistenceError
from app.models.assessment import Assessment, AssessmentResponse, utc_now_iso
from app.models.question_types import ResponseStatus

logger = logging.getLogger(__name__)


class AssessmentRepository(Protocol):
    def get_assessment(self, job_id: str) -> Optional[Assessment]: ...

    def put_assessment(self, job_id: str, assessment: Assessment) -> Tuple[Assessment, bool]: ...

    def post_response(self, assessment_id: str, response: AssessmentResponse) -> AssessmentResponse: ...

    def get_response(self, response_id: str) -> Optional[AssessmentResponse]: ...


class SqlAssessmentRepository:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    # Assessments -------------------------------------------------------

    def get_assessment(self, job_id: str) -> Optional[Assessment]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    sql_text("SELECT body FROM assessment WHERE job_id = :job"),
                    {"job": job_id},
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_assessment_failed job_id=%s", job_id, exc_info=True)
            raise PersistenceError("assessment lookup failed", operation="get_assessment") from exc
        if row is None:
            return None
        return Assessment.from_storage(json.loads(row[0]))

    def get_assessment_by_id(self, assessment_id: str) -> Optional[Assessment]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    sql_text("SELECT body FROM assessment WHERE assessment_id = :aid"),
                    {"aid": assessment_id},
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_assessment_by_id_failed assessment_id=%s", assessment_id, exc_info=True)
            raise PersistenceError("assessment lookup failed", operation="get_assessment") from exc
        if row is None:
            return None
        return Assessment.from_storage(json.loads(row[0]))

    def list_assessments(self) -> List[Assessment]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    sql_text("SELECT body FROM assessment ORDER BY created_at ASC, assessment_id ASC")
                ).fetchall()
        except SQLAlchemyError as exc:
            logger.error("list_assessments_failed", exc_info=True)
            raise PersistenceError("assessment listing failed", operation="list_assessments") from exc
        return [Assessment.from_storage(json.loads(r[0])) for r in rows]

    def put_assessment(self, job_id: str, assessment: Assessment) -> Tuple[Assessment, bool]:
        """Upsert the definition for ``job_id``.

        Replacing keeps the stored assessment id and createdAt so drafts keyed
        by assessment id survive a re-save. ``updatedAt`` is always stamped.
        Returns the stored assessment and whether it was newly created.
        """
        now = utc_now_iso()
        try:
            with self.engine.begin() as conn:
                existing = conn.execute(
                    sql_text("SELECT assessment_id, created_at FROM assessment WHERE job_id = :job"),
                    {"job": job_id},
                ).fetchone()
                if existing is not None:
                    stored = assessment.model_copy(
                        update={
                            "id": str(existing[0]),
                            "job_id": job_id,
                            "created_at": str(existing[1]),
                            "updated_at": now,
                        }
                    )
                    conn.execute(
                        sql_text(
                            "UPDATE assessment SET body = :body, updated_at = :ts, is_active = :active "
                            "WHERE assessment_id = :aid"
                        ),
                        {
                            "body": json.dumps(stored.to_storage()),
                            "ts": now,
                            "active": bool(stored.is_active),
                            "aid": stored.id,
                        },
                    )
                    created = False
                else:
                    stored = assessment.model_copy(update={"job_id": job_id, "updated_at": now})
                    conn.execute(
                        sql_text(
                            "INSERT INTO assessment (assessment_id, job_id, body, is_active, created_at, updated_at) "
                            "VALUES (:aid, :job, :body, :active, :created, :ts)"
                        ),
                        {
                            "aid": stored.id,
                            "job": job_id,
                            "body": json.dumps(stored.to_storage()),
                            "active": bool(stored.is_active),
                            "created": stored.created_at,
                            "ts": now,
                        },
                    )
                    created = True
        except SQLAlchemyError as exc:
            logger.error("put_assessment_failed job_id=%s", job_id, exc_info=True)
            raise PersistenceError("assessment save failed", operation="put_assessment") from exc
        logger.info("put_assessment job_id=%s assessment_id=%s created=%s", job_id, stored.id, created)
        return stored, created

    # Responses ---------------------------------------------------------

    def post_response(self, assessment_id: str, response: AssessmentResponse) -> AssessmentResponse:
        """Store a draft or completed response, replacing any row with the same id.

        A row already marked completed is never replaced; the stored record
        is returned as is.
        """
        stored = response.model_copy(update={"assessment_id": assessment_id})
        params = {
            "rid": stored.id,
            "aid": assessment_id,
            "cid": stored.candidate_id,
            "status": stored.status,
            "body": json.dumps(stored.to_storage()),
            "started": stored.started_at,
            "completed": stored.completed_at,
        }
        try:
            with self.engine.begin() as conn:
                existing = conn.execute(
                    sql_text("SELECT status, body FROM assessment_response WHERE response_id = :rid"),
                    {"rid": stored.id},
                ).fetchone()
                if existing is not None and existing[0] == ResponseStatus.COMPLETED:
                    logger.info(
                        "post_response_already_completed assessment_id=%s response_id=%s",
                        assessment_id,
                        stored.id,
                    )
                    return AssessmentResponse.from_storage(json.loads(existing[1]))
                conn.execute(
                    sql_text("DELETE FROM assessment_response WHERE response_id = :rid"),
                    {"rid": stored.id},
                )
                conn.execute(
                    sql_text(
                        "INSERT INTO assessment_response "
                        "(response_id, assessment_id, candidate_id, status, body, started_at, completed_at) "
                        "VALUES (:rid, :aid, :cid, :status, :body, :started, :completed)"
                    ),
                    params,
                )
        except SQLAlchemyError as exc:
            logger.error(
                "post_response_failed assessment_id=%s response_id=%s",
                assessment_id,
                stored.id,
                exc_info=True,
            )
            raise PersistenceError("response save failed", operation="post_response") from exc
        logger.info(
            "post_response assessment_id=%s response_id=%s status=%s",
            assessment_id,
            stored.id,
            stored.status,
        )
        return stored

    def get_response(self, response_id: str) -> Optional[AssessmentResponse]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    sql_text("SELECT body FROM assessment_response WHERE response_id = :rid"),
                    {"rid": response_id},
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_response_failed response_id=%s", response_id, exc_info=True)
            raise PersistenceError("response lookup failed", operation="get_response") from exc
        if row is None:
            return None
        return AssessmentResponse.from_storage(json.loads(row[0]))

    def list_responses(self, assessment_id: str) -> List[AssessmentResponse]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    sql_text(
                        "SELECT body FROM assessment_response WHERE assessment_id = :aid "
                        "ORDER BY started_at ASC, response_id ASC"
                    ),
                    {"aid": assessment_id},
                ).fetchall()
        except SQLAlchemyError as exc:
            logger.error("list_responses_failed assessment_id=%s", assessment_id, exc_info=True)
            raise PersistenceError("response listing failed", operation="list_responses") from exc
        return [AssessmentResponse.from_storage(json.loads(r[0])) for r in rows]


__all__ = ["AssessmentRepository", "SqlAssessmentRepository"]
