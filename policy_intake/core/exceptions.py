"""Custom exception hierarchy."""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    def __init__(
        self,
        message: str,
        original_error: Exception = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, original_error)
        self.status_code = status_code


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class AcquisitionError(AppError):
    """Raised when document text cannot be acquired (fetch, parse or OCR)."""
    pass


class DocumentParseError(AcquisitionError):
    """Raised when the embedded-text parser cannot open the document."""
    pass


class OCRTimeoutError(AcquisitionError):
    """Raised when an OCR job does not finish within the wait ceiling."""
    pass


class ExtractionError(AppError):
    """Raised when the structured LLM extraction for a model tier fails.

    Attributes:
        code: Short machine code, e.g. ``primary_timeout``
        hint: Human-readable hint for the review UI
        detail: Diagnostic payload (status code, raw message)
    """
    def __init__(
        self,
        code: str,
        hint: str,
        detail: Optional[Dict[str, Any]] = None,
        original_error: Exception = None,
    ):
        super().__init__(f"{code}: {hint}", original_error)
        self.code = code
        self.hint = hint
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "hint": self.hint, "detail": self.detail}


class ValidationError(AppError):
    """Raised when input or output validation fails.

    ``errors`` lists every failing field as ``{"field": ..., "message": ...}``.
    """
    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []


class DocumentNotFoundError(AppError):
    """Raised when an upload id is unknown."""
    pass


class ReviewStateError(AppError):
    """Raised when an upload is not in a reviewable state."""
    pass
