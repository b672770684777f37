"""Lightweight SQL migrations runner.

Applies .sql files in lexical order from the project's ``migrations/``
directory. Skips rollback files and records applied filenames in the
``schema_migrations`` table of the target database, so a fresh database
(including SQLite in-memory) always receives the full schema. Intended for
local development and CI; production environments should use the
platform's migration mechanism.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

from app.models.assessment import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

_JOURNAL_DDL = (
    "CREATE TABLE IF NOT EXISTS schema_migrations ("
    "filename VARCHAR(255) PRIMARY KEY, applied_at VARCHAR(40) NOT NULL)"
)


def _iter_sql_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.glob("*.sql")):
        if "rollback" in p.name.lower():
            continue
        yield p


def _split_statements(sql: str) -> List[str]:
    """Split a script on ';', dropping comment-only and empty segments."""
    out: List[str] = []
    for chunk in sql.split(";"):
        lines = [ln for ln in chunk.splitlines() if not ln.strip().startswith("--")]
        stmt = "\n".join(lines).strip()
        if stmt and stmt.upper() not in {"BEGIN", "COMMIT", "END"}:
            out.append(stmt)
    return out


def _exec_script(conn: Connection, sql: str) -> None:
    for stmt in _split_statements(sql):
        conn.exec_driver_sql(stmt)


def apply_migrations(engine: Engine, migrations_dir: str | os.PathLike[str] | None = None) -> List[str]:
    """Apply pending migrations and return the filenames applied by this call."""
    root = Path(migrations_dir) if migrations_dir is not None else DEFAULT_MIGRATIONS_DIR
    if not root.exists():
        logger.warning("migrations_dir_missing path=%s", root)
        return []

    applied_now: List[str] = []
    with engine.begin() as conn:
        conn.exec_driver_sql(_JOURNAL_DDL)
        applied = {
            str(r[0]) for r in conn.execute(sql_text("SELECT filename FROM schema_migrations")).fetchall()
        }
        for sql_path in _iter_sql_files(root):
            fname = sql_path.name
            if fname in applied:
                continue
            sql = sql_path.read_text(encoding="utf-8")
            if not sql.strip():
                continue
            _exec_script(conn, sql)
            conn.execute(
                sql_text("INSERT INTO schema_migrations (filename, applied_at) VALUES (:f, :ts)"),
                {"f": fname, "ts": utc_now_iso()},
            )
            applied_now.append(fname)
            logger.info("migration_applied file=%s", fname)
    return applied_now
