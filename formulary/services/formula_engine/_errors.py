"""Error taxonomy for the formula engine and its store collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class FormulaEngineError(RuntimeError):
    """Base class for every failure raised by the formula engine."""


class InvalidBatchSizeError(FormulaEngineError, ValueError):
    """Raised when a requested batch size is not a positive number."""

    def __init__(self, requested_batch_size):
        self.requested_batch_size = requested_batch_size
        super().__init__(f"Batch size must be greater than zero (got {requested_batch_size!r}).")


class SessionStateError(FormulaEngineError):
    """Raised when an edit-session operation is not allowed in the current state."""


class FormulaStoreError(FormulaEngineError):
    """Raised by a FormulaStore when a read or write is rejected."""

    status_code = 500

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message or self.__class__.__doc__ or "Formula store error")
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(FormulaStoreError):
    """Formula not found."""

    status_code = 404


class UnauthorizedError(FormulaStoreError):
    """Authentication required."""

    status_code = 401


class ForbiddenError(FormulaStoreError):
    """You do not have permission to modify this formula."""

    status_code = 403


class ConflictError(FormulaStoreError):
    """Formula was modified by someone else; reload and try again."""

    status_code = 409

    def __init__(self, message: str = "", *, expected_version=None, actual_version=None):
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version


class StoreValidationError(FormulaStoreError):
    """The store rejected the submitted payload."""

    status_code = 422


class PersistenceFailure(FormulaEngineError):
    """A save aborted part way; the edit session keeps its draft."""

    def __init__(self, stage: str, message: str = ""):
        self.stage = stage
        super().__init__(message or f"Failed to save formula ({stage}).")

    @property
    def unauthorized(self) -> bool:
        return isinstance(self.__cause__, UnauthorizedError)


class DuplicationFailure(FormulaEngineError):
    """Duplicating a formula failed; nothing was navigated to."""


@dataclass(frozen=True)
class ValidationWarning:
    """Advisory composition finding. Surfaced for display, never raised."""

    code: str
    message: str
    ingredient_id: Optional[int] = None

    def to_dict(self):
        return {"code": self.code, "message": self.message, "ingredient_id": self.ingredient_id}
