"""
Exception taxonomy for the PDF chat RAG core.

Every error carries the StatusCode the request layer reports for it.
"""

from typing import Optional

from .models import StatusCode


class RAGError(Exception):
    """Base exception for retrieval and generation failures."""

    status_code: StatusCode = StatusCode.GENERATION_FAILED

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(self.message)


class OllamaConnectionError(RAGError):
    """Raised when the Ollama server stays unreachable after all retries."""

    status_code = StatusCode.SERVICE_UNAVAILABLE

    def __init__(self, message: str, endpoint: str = "", attempts: int = 0, cause: Optional[Exception] = None):
        self.endpoint = endpoint
        self.attempts = attempts
        super().__init__(message, cause)


class ValidationError(RAGError):
    """Raised when a required request field is missing or empty."""

    status_code = StatusCode.VALIDATION_FAILED

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)


class RetrievalEmptyError(RAGError):
    """Raised when document mode finds no chunks to ground an answer in."""

    status_code = StatusCode.NO_RELEVANT_CONTEXT


class UpstreamError(RAGError):
    """An Ollama call failed or returned a non-success status."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_text: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        self.upstream_status = upstream_status
        self.upstream_text = upstream_text
        super().__init__(message, cause)


class GenerationError(UpstreamError):
    """Raised when text generation fails."""

    status_code = StatusCode.GENERATION_FAILED


class EmbeddingError(UpstreamError):
    """Raised when embedding generation fails."""

    status_code = StatusCode.EMBEDDING_FAILED

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_text: Optional[str] = None,
        index: Optional[int] = None,
        cause: Optional[Exception] = None
    ):
        self.index = index
        super().__init__(message, upstream_status, upstream_text, cause)


class ExtractionError(RAGError):
    """Raised when text cannot be extracted from a document."""

    status_code = StatusCode.VALIDATION_FAILED

    def __init__(self, message: str, file_path: Optional[str] = None, cause: Optional[Exception] = None):
        self.file_path = file_path
        super().__init__(message, cause)
