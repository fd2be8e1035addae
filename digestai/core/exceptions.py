"""Domain errors raised by services and rendered by the API's exception handler."""

from typing import Optional


class DigestError(Exception):
    """Base error carrying a user-facing message and an HTTP status code."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInputError(DigestError):
    status_code = 400
    error = "Invalid input"


class UsageLimitError(DigestError):
    status_code = 429
    error = "Usage limit reached"


class ContentFetchError(DigestError):
    """The upstream page or platform API could not be fetched."""

    status_code = 502
    error = "Content fetch failed"


class ContentExtractionError(DigestError):
    """Content was fetched but nothing usable could be extracted from it."""

    status_code = 422
    error = "Content extraction failed"


class LLMError(DigestError):
    status_code = 502
    error = "Summary generation failed"


class NotFoundError(DigestError):
    status_code = 404
    error = "Not found"


class AccessDeniedError(DigestError):
    status_code = 403
    error = "Forbidden"


class ConfigurationError(DigestError):
    """A required server setting (usually an API key) is missing."""

    status_code = 500
    error = "Server misconfigured"
