"""Error taxonomy shared by the services and the HTTP layer."""
from typing import Optional

from core.enums import ErrorCode


class ChatRAGError(Exception):
    """Base error carrying an error code and the HTTP status it maps to."""

    status_code: int = 500
    default_code: ErrorCode = ErrorCode.BACKEND_ERROR

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        self.message = message
        self.error_code = error_code or self.default_code
        super().__init__(message)

    def __str__(self):
        # Format used for logging
        return f"[{self.error_code.value}] {self.message}"


class InvalidArgumentError(ChatRAGError):
    """Missing or malformed input (session id, title, chunk parameters...)."""
    status_code = 400
    default_code = ErrorCode.INVALID_ARGUMENT


class NotFoundError(ChatRAGError):
    status_code = 404
    default_code = ErrorCode.NOT_FOUND


class ForbiddenError(ChatRAGError):
    """The resource exists but belongs to someone else."""
    status_code = 403
    default_code = ErrorCode.FORBIDDEN


class BackendError(ChatRAGError):
    """Vector index, embedding or LLM backend failure."""
    status_code = 503
    default_code = ErrorCode.BACKEND_ERROR


class GenerationFailure(ChatRAGError):
    """
    Both the primary and the fallback generation failed.

    Raised ``from`` the primary error so ``__cause__`` points at the root cause.
    """
    status_code = 500
    default_code = ErrorCode.GENERATION_FAILED
