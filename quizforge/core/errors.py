"""
QuizForge — Error Taxonomy
===========================
Every failure the generation/validation core surfaces to a caller is an
``AIError`` carrying an ``ErrorCode``. The code decides whether the retry
layer may try again and which title the user sees.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorCode(str, Enum):
    # API / network
    API_ERROR = "API_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"

    # Validation / input
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED = "MISSING_REQUIRED"

    # Processing
    GENERATION_FAILED = "GENERATION_FAILED"
    PARSING_FAILED = "PARSING_FAILED"
    PROCESSING_ERROR = "PROCESSING_ERROR"

    # Auth
    AUTH_REQUIRED = "AUTH_REQUIRED"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Data
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE = "DUPLICATE"
    DATA_CORRUPTION = "DATA_CORRUPTION"

    # System
    SYSTEM_ERROR = "SYSTEM_ERROR"
    UNEXPECTED = "UNEXPECTED"


RETRYABLE_CODES = frozenset({
    ErrorCode.API_ERROR,
    ErrorCode.RATE_LIMIT,
    ErrorCode.NETWORK_ERROR,
    ErrorCode.TIMEOUT,
})

ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.API_ERROR: "API error occurred",
    ErrorCode.RATE_LIMIT: "Rate limit exceeded",
    ErrorCode.NETWORK_ERROR: "Network error occurred",
    ErrorCode.TIMEOUT: "Operation timed out",
    ErrorCode.VALIDATION_FAILED: "Validation failed",
    ErrorCode.INVALID_INPUT: "Invalid input provided",
    ErrorCode.MISSING_REQUIRED: "Required fields missing",
    ErrorCode.GENERATION_FAILED: "Failed to generate content",
    ErrorCode.PARSING_FAILED: "Failed to parse response",
    ErrorCode.PROCESSING_ERROR: "Error processing request",
    ErrorCode.AUTH_REQUIRED: "Authentication required",
    ErrorCode.UNAUTHORIZED: "Unauthorized access",
    ErrorCode.FORBIDDEN: "Access forbidden",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.DUPLICATE: "Duplicate resource",
    ErrorCode.DATA_CORRUPTION: "Data corruption detected",
    ErrorCode.SYSTEM_ERROR: "System error occurred",
    ErrorCode.UNEXPECTED: "An unexpected error occurred",
}

_ERROR_TITLES: Dict[ErrorCode, str] = {
    ErrorCode.API_ERROR: "API Error",
    ErrorCode.RATE_LIMIT: "Rate Limit Exceeded",
    ErrorCode.NETWORK_ERROR: "Network Error",
    ErrorCode.TIMEOUT: "Operation Timeout",
    ErrorCode.VALIDATION_FAILED: "Validation Failed",
    ErrorCode.GENERATION_FAILED: "Generation Failed",
    ErrorCode.AUTH_REQUIRED: "Authentication Required",
    ErrorCode.UNAUTHORIZED: "Unauthorized",
    ErrorCode.FORBIDDEN: "Access Denied",
    ErrorCode.UNEXPECTED: "Unexpected Error",
}


class ErrorDetails(BaseModel):
    code: ErrorCode
    message: str
    retryable: bool = False
    severity: str = "error"  # error | warning | info
    category: Optional[str] = None  # validation | generation | processing
    context: Optional[Dict[str, Any]] = None


class AIError(Exception):
    """A classified failure. ``details.code`` drives retry and user messaging."""

    def __init__(self, message: str, details: ErrorDetails):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def code(self) -> ErrorCode:
        return self.details.code

    @property
    def retryable(self) -> bool:
        return self.details.retryable

    def __repr__(self) -> str:
        return f"AIError(code={self.code.value}, message={self.message!r})"


def severity_for(code: ErrorCode) -> str:
    if code in (ErrorCode.VALIDATION_FAILED, ErrorCode.INVALID_INPUT, ErrorCode.MISSING_REQUIRED):
        return "warning"
    if code in RETRYABLE_CODES:
        return "info"
    return "error"


def error_title(code: ErrorCode) -> str:
    return _ERROR_TITLES.get(code, "Error")


def create_ai_error(
    code: ErrorCode,
    message: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> AIError:
    """Build an ``AIError`` with the default message, retryability and severity for ``code``."""
    text = message or ERROR_MESSAGES[code]
    return AIError(
        text,
        ErrorDetails(
            code=code,
            message=text,
            retryable=code in RETRYABLE_CODES,
            severity=severity_for(code),
            context=context,
        ),
    )


def is_retryable_error(error: BaseException) -> bool:
    if isinstance(error, AIError):
        return error.retryable

    # Unclassified errors: only obvious transient failures count.
    text = str(error).lower()
    return "network" in text or "rate limit" in text
