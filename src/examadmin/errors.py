"""Domain exceptions and operation results.

Services raise these for hard failures; routes translate them into
HTTP status codes. Soft failures are returned as OperationResult.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ExamAdminError(Exception):
    """Base error for the exam admin backend."""

    pass


class NotFoundError(ExamAdminError):
    """Raised when an entity does not exist (or is inactive)."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class ValidationError(ExamAdminError):
    """Raised when input data is invalid."""

    pass


class ConflictError(ExamAdminError):
    """Raised on uniqueness or state conflicts."""

    pass


class PermissionDeniedError(ExamAdminError):
    """Raised when the caller's role does not allow the action."""

    pass


class AuthenticationError(ExamAdminError):
    """Raised when credentials or tokens are missing or invalid."""

    pass


@dataclass
class OperationResult:
    """Outcome of an operation that reports failure without raising."""

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> OperationResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> OperationResult:
        return cls(success=False, error=error)
