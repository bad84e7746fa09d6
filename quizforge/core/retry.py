import asyncio
import logging
from typing import Awaitable, Callable, FrozenSet, Optional, TypeVar

from pydantic import BaseModel, Field

from quizforge.core.config import settings
from quizforge.core.errors import (
    RETRYABLE_CODES,
    AIError,
    ErrorCode,
    ErrorDetails,
    error_title,
)
from quizforge.core.notifications import Notifier, log_notifier, notify

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryOptions(BaseModel):
    """Exponential backoff policy. Delays are in seconds."""
    max_attempts: int = Field(default=settings.RETRY_MAX_ATTEMPTS, ge=1)
    initial_delay: float = Field(default=settings.RETRY_INITIAL_DELAY, ge=0)
    max_delay: float = Field(default=settings.RETRY_MAX_DELAY, ge=0)
    backoff_factor: float = Field(default=settings.RETRY_BACKOFF_FACTOR, ge=1)
    retryable_errors: FrozenSet[ErrorCode] = RETRYABLE_CODES


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    notifier: Notifier = log_notifier,
) -> T:
    """
    Run ``operation`` until it succeeds or the policy gives up.

    - Non-retryable ``AIError``: re-raised unchanged after the first call.
    - Retryable ``AIError`` on the final attempt: raised as PROCESSING_ERROR.
    - Anything else: wrapped once as UNEXPECTED and raised without retrying.
    """
    opts = options or RetryOptions()
    delay = opts.initial_delay
    last_error: Optional[AIError] = None

    for attempt in range(1, opts.max_attempts + 1):
        try:
            return await operation()
        except AIError as e:
            last_error = e
            if e.code not in opts.retryable_errors:
                raise

            if attempt == opts.max_attempts:
                logger.error(f"[RETRY] Giving up after {attempt} attempts: {e.message}")
                raise AIError(
                    f"Operation failed after {attempt} attempts",
                    ErrorDetails(
                        code=ErrorCode.PROCESSING_ERROR,
                        message=e.message,
                        retryable=False,
                        severity="error",
                        context={"attempts": attempt},
                    ),
                ) from e

            logger.warning(
                f"[RETRY] Attempt {attempt}/{opts.max_attempts} failed ({e.code.value}). "
                f"Retrying in {delay:.2f}s..."
            )
            notify(
                notifier,
                f"Retry Attempt {attempt}/{opts.max_attempts}",
                "Operation failed, retrying...",
                variant="destructive",
            )
            await asyncio.sleep(delay)
            delay = min(delay * opts.backoff_factor, opts.max_delay)
        except Exception as e:
            raise AIError(
                "Unexpected error occurred",
                ErrorDetails(
                    code=ErrorCode.UNEXPECTED,
                    message=str(e) or type(e).__name__,
                    retryable=False,
                    severity="error",
                ),
            ) from e

    raise last_error


def handle_ai_error(error: BaseException, notifier: Notifier = log_notifier) -> AIError:
    """
    Single funnel for unrecoverable failures: classify, notify, raise.

    Declared to return ``AIError`` only so callers can write ``raise handle_ai_error(e)``;
    it always raises.
    """
    if isinstance(error, AIError):
        notify(notifier, error_title(error.code), error.message, variant="destructive")
        raise error

    message = str(error) or "An unknown error occurred"
    wrapped = AIError(
        message,
        ErrorDetails(code=ErrorCode.UNEXPECTED, message=message, retryable=False, severity="error"),
    )
    notify(notifier, error_title(ErrorCode.UNEXPECTED), message, variant="destructive")
    raise wrapped from error


async def safe_ai_operation(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    notifier: Notifier = log_notifier,
) -> T:
    """The sanctioned way to run a retryable operation on behalf of a user."""
    try:
        return await with_retry(operation, options, notifier)
    except Exception as e:
        raise handle_ai_error(e, notifier)
