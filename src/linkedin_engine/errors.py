"""Error classes for the LinkedIn engine client."""

from datetime import datetime
from typing import Any, Optional


class EngineError(Exception):
    """Base error for engine operations."""

    def __init__(
        self,
        error_type: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize engine error."""
        self.error_type = error_type
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now()
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of error."""
        return f"[{self.error_type}] {self.message}"


class ConfigError(EngineError):
    """Configuration error."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        """Initialize config error."""
        super().__init__("config", message, details)


class AuthError(EngineError):
    """Session rejected by the remote platform (expired or invalid cookies)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        """Initialize auth error."""
        super().__init__("auth", message, details)


class APIError(EngineError):
    """Remote API error."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        """Initialize API error."""
        super().__init__("api", message, details)
        self.status_code = status_code


class RateLimitError(APIError):
    """Remote API refused the request because of rate limiting."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        details: Optional[dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Human-readable error message
            details: Additional error context
            retry_after: Suggested wait time in seconds before retrying
        """
        error_details = details or {}
        if retry_after is not None:
            error_details["retry_after_seconds"] = retry_after
        super().__init__(message, error_details, status_code=429)
        self.retry_after = retry_after


class SessionError(EngineError):
    """No usable session for an integration."""

    def __init__(self, integration_id: str, message: Optional[str] = None):
        """Initialize session error."""
        super().__init__(
            "session",
            message or "No session found",
            {"integration_id": integration_id},
        )
        self.integration_id = integration_id
