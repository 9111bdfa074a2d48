"""Exception hierarchy for the retrieval pipeline.

Every error carries a ``category`` and ``severity`` so the error tracker can
bucket it without inspecting message text.
"""

from typing import Any, Optional


class RetrievalError(Exception):
    """Base class for all retrieval failures."""

    category = "UNKNOWN"
    severity = "ERROR"

    def __init__(self, message: str, attempts: Optional[list[Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.attempts = list(attempts or [])

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


class ConfigurationError(RetrievalError):
    """Endpoint or credentials are missing."""

    category = "CONFIGURATION"
    severity = "CRITICAL"


class ValidationError(RetrievalError):
    """A required request field is missing or malformed."""

    category = "VALIDATION"
    severity = "WARNING"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class AuthError(RetrievalError):
    """The remote service rejected the access token."""

    category = "AUTHENTICATION"
    severity = "CRITICAL"


class RateLimitError(RetrievalError):
    """The remote service kept throttling after all retries."""

    category = "RATE_LIMIT"
    severity = "ERROR"


class TransportError(RetrievalError):
    """Network failure or unexpected HTTP status."""

    category = "NETWORK"
    severity = "ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: Optional[list[Any]] = None,
    ) -> None:
        super().__init__(message, attempts)
        self.status_code = status_code
        if status_code is not None and status_code >= 500:
            self.category = "API_RESPONSE"
            self.severity = "CRITICAL"


class MalformedResponseError(RetrievalError):
    """A 2xx response that could not be parsed or carried errors."""

    category = "API_RESPONSE"
    severity = "ERROR"
