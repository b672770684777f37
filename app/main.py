from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from app.config import AppConfig, load_config
from app.logging_setup import configure_logging
from app.db.base import get_engine
from app.db.migrations_runner import apply_migrations
from app.logic.errors import PersistenceError
from app.routes import api_router
from app.http.problem import (
    handle_http_exception,
    handle_persistence_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from app.http.request_id import RequestIdMiddleware
from app.middleware.cors import apply_cors

logger = logging.getLogger(__name__)


def _health_check() -> Callable[[], dict]:
    def check() -> dict:
        try:
            with get_engine().connect() as conn:
                conn.execute(sql_text("SELECT 1")).fetchone()
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": type(e).__name__}

    return check


def create_app(config: AppConfig | None = None) -> FastAPI:
    # Configure global logging before app instantiation so all modules emit
    configure_logging()
    cfg = config or load_config()

    app = FastAPI(title="Assessment Service", version="1.0.0")
    app.state.config = cfg
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(PersistenceError, handle_persistence_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)
    apply_cors(app, origins=cfg.runtime.cors_allow_origins)

    # Apply migrations on startup (guarded) to avoid import-time side effects
    @app.on_event("startup")
    def _apply_migrations() -> None:
        engine = get_engine(cfg.database.url)
        if not cfg.runtime.auto_apply_migrations:
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
            return
        try:
            applied = apply_migrations(engine)
        except SQLAlchemyError:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup_migrations_applied count=%s", len(applied))

    # Routers
    app.include_router(api_router, prefix="/api/v1")
    # Include test-support router (no prefix) to expose '/__test__/events'
    from app.routes.test_support import router as test_support_router
    app.include_router(test_support_router)

    health_check = _health_check()

    @app.get("/health")
    def health():
        return health_check()

    return app


__all__ = ["create_app"]
