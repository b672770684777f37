"""Configuration utilities for the assessment service.

This module loads application configuration with the following rules:
- Primary source: `assessment_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG_FILE = Path("assessment_config.json")
DEFAULT_DATABASE_URL = "sqlite:///./assessments.db"
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Unreadable override is ignored
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _truthy(value: object) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class DatabaseConfig(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def url_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.url must be a non-empty string")
        return v


class DraftConfig(BaseModel):
    builder_key_prefix: str = Field(default="builder:", min_length=1)
    session_key_prefix: str = Field(default="session:", min_length=1)


class RuntimeConfig(BaseModel):
    auto_apply_migrations: bool = Field(default=True)
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])


class AppConfig(BaseModel):
    database: DatabaseConfig
    drafts: DraftConfig
    runtime: RuntimeConfig


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) assessment_config.json at project root
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG_FILE)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    # Database: the test URL wins so test runs never touch a real database
    url = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.url")
        or DEFAULT_DATABASE_URL
    )

    # Drafts
    prefix = _env("DRAFT_KEY_PREFIX") or _read_config_file("drafts.key_prefix") or _base("drafts.key_prefix")
    builder_prefix = f"{prefix}builder:" if prefix else (_base("drafts.builder_key_prefix") or "builder:")
    session_prefix = f"{prefix}session:" if prefix else (_base("drafts.session_key_prefix") or "session:")

    # Runtime
    migrations_text = (
        _env("AUTO_APPLY_MIGRATIONS")
        or _read_config_file("runtime.auto_apply_migrations")
        or _base("runtime.auto_apply_migrations", "true")
    )
    origins_text = _env("CORS_ALLOW_ORIGINS") or _read_config_file("runtime.cors_allow_origins") or "*"

    try:
        cfg = AppConfig(
            database=DatabaseConfig(url=url),
            drafts=DraftConfig(builder_key_prefix=builder_prefix, session_key_prefix=session_prefix),
            runtime=RuntimeConfig(
                auto_apply_migrations=_truthy(migrations_text),
                cors_allow_origins=[o.strip() for o in origins_text.split(",") if o.strip()],
            ),
        )
        return cfg
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "DraftConfig",
    "RuntimeConfig",
    "load_config",
]
