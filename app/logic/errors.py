"""Exception types raised by the assessment engine.

Validation violations are never raised; they are returned as data. Only
persistence failures and misuse of a closed session surface as exceptions.
"""

from __future__ import annotations


class AssessmentEngineError(Exception):
    pass


class PersistenceError(AssessmentEngineError):
    """A store or repository call failed.

    In-memory builder and session state is left untouched, so the caller may
    retry the same operation.
    """

    def __init__(self, message: str, *, operation: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.operation = operation
        self.retryable = retryable

    @property
    def user_message(self) -> str:
        if self.retryable:
            return "Could not save your changes. Please try again."
        return "Could not save your changes."


class SessionClosedError(AssessmentEngineError):
    """Raised when a completed session is asked to change its answers."""


__all__ = ["AssessmentEngineError", "PersistenceError", "SessionClosedError"]
