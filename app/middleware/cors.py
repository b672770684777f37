"""CORS configuration helpers.

Provides a small utility for applying CORS with the headers browsers need to
read. No diagnostics are added here; keep this focused on configuration only.
"""

from __future__ import annotations

from typing import Iterable
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


# Response headers that must be exposed to browsers
EXPOSE_HEADERS: list[str] = [
    "X-Request-Id",
    "Location",
    "Content-Disposition",
]


def apply_cors(app: FastAPI, *, origins: Iterable[str] | None = None) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins or ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=EXPOSE_HEADERS,
    )


__all__ = ["apply_cors", "EXPOSE_HEADERS"]
