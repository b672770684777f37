"""Key-value stores for builder and session drafts.

The builder and runtime session receive a store explicitly; there is no
module-level default. Two implementations are provided:

- ``InMemoryKeyValueStore`` for tests and single-process use.
- ``SqlKeyValueStore`` backed by the ``kv_store`` table.

Values are JSON-serialisable dicts.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.db.base import get_engine
from app.logic.errors import PersistenceError
from app.models.assessment import utc_now_iso

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any]) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        # Stored as JSON text so callers never share mutable state with the store
        self._data[key] = json.dumps(value)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqlKeyValueStore:
    """Key-value store persisted in the ``kv_store`` table."""

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    sql_text("SELECT value FROM kv_store WHERE store_key = :k"),
                    {"k": key},
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("kv_store_get_failed key=%s", key, exc_info=True)
            raise PersistenceError("draft lookup failed", operation="kv_get") from exc
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except (TypeError, json.JSONDecodeError):
            logger.warning("kv_store_value_unreadable key=%s", key)
            return None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        payload = json.dumps(value)
        try:
            with self.engine.begin() as conn:
                conn.execute(sql_text("DELETE FROM kv_store WHERE store_key = :k"), {"k": key})
                conn.execute(
                    sql_text(
                        "INSERT INTO kv_store (store_key, value, updated_at) VALUES (:k, :v, :ts)"
                    ),
                    {"k": key, "v": payload, "ts": utc_now_iso()},
                )
        except SQLAlchemyError as exc:
            logger.error("kv_store_set_failed key=%s", key, exc_info=True)
            raise PersistenceError("draft save failed", operation="kv_set") from exc

    def clear(self, key: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(sql_text("DELETE FROM kv_store WHERE store_key = :k"), {"k": key})
        except SQLAlchemyError as exc:
            logger.error("kv_store_clear_failed key=%s", key, exc_info=True)
            raise PersistenceError("draft clear failed", operation="kv_clear") from exc


__all__ = ["KeyValueStore", "InMemoryKeyValueStore", "SqlKeyValueStore"]
