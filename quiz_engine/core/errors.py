"""
Error taxonomy for the quiz engine.

Services raise these; the HTTP layer renders them through a single
exception handler registered in ``quiz_engine.main``.
"""
from typing import Any, Dict


class QuizEngineError(Exception):
    """Base class for errors the calling layer can translate for users."""

    status_code: int = 500
    error_type: str = "engine_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "type": self.error_type,
            "status_code": self.status_code,
        }


class NotFound(QuizEngineError):
    status_code = 404
    error_type = "not_found"


class ProgressNotFound(NotFound):
    """A submission arrived for a (staff, quiz) pair that never started an attempt."""

    error_type = "progress_not_found"


class NotAvailable(QuizEngineError):
    status_code = 409
    error_type = "not_available"


class QuizValidationError(QuizEngineError):
    status_code = 400
    error_type = "validation_error"


class ConcurrencyConflict(QuizEngineError):
    """Optimistic-lock retries were exhausted; the caller may try again."""

    status_code = 503
    error_type = "concurrency_conflict"


class Unauthorized(QuizEngineError):
    status_code = 403
    error_type = "unauthorized"
