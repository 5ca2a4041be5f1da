# ruff: noqa: D107
"""AI gateway exceptions."""

from typing import Any

from .base import BaseAppException


class AIServiceError(BaseAppException):
    """Base exception for AI gateway errors."""

    def __init__(
        self,
        message: str = "AI service error occurred",
        error_code: str = "AI_SERVICE_ERROR",
        details: dict[str, Any] | None = None,
        status_code: int = 500,
    ):
        super().__init__(message, status_code=status_code, error_code=error_code, details=details)


class AIConfigurationError(AIServiceError):
    """Exception raised when the AI gateway is not properly configured."""

    def __init__(
        self,
        message: str = "AI service is not properly configured",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "AI_CONFIGURATION_ERROR", details, status_code=503)


class RateLimitedError(AIServiceError):
    """Exception raised when the gateway answers 429."""

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please wait a moment and try again.",
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if retry_after is not None:
            details["retry_after"] = retry_after
        self.retry_after = retry_after
        super().__init__(message, "AI_RATE_LIMITED", details, status_code=429)


class QuotaExhaustedError(AIServiceError):
    """Exception raised when the gateway answers 402 (credits exhausted)."""

    def __init__(
        self,
        message: str = "AI credits exhausted. Please add funds to continue.",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "AI_QUOTA_EXHAUSTED", details, status_code=402)


class InferenceFailureError(AIServiceError):
    """Exception raised for any other gateway or transport failure."""

    def __init__(
        self,
        message: str = "Failed to get AI response",
        upstream_status: int | None = None,
        details: dict[str, Any] | None = None,
        error_code: str = "AI_INFERENCE_FAILED",
        status_code: int = 502,
    ):
        details = dict(details or {})
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        self.upstream_status = upstream_status
        super().__init__(message, error_code, details, status_code=status_code)


class AITimeoutError(InferenceFailureError):
    """Exception raised when the gateway request times out."""

    def __init__(
        self,
        message: str = "AI service request timed out",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details=details, error_code="AI_TIMEOUT", status_code=504)


def map_gateway_status(
    status_code: int,
    message: str | None = None,
    retry_after: int | None = None,
) -> AIServiceError:
    """Map a non-success gateway status code to the matching exception."""
    if status_code == 429:
        return RateLimitedError(retry_after=retry_after)
    if status_code == 402:
        return QuotaExhaustedError()
    return InferenceFailureError(message or "Failed to get AI response", upstream_status=status_code)
