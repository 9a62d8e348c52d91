"""
Retry policy for external provider calls.

All provider clients (ESPN, The Odds API, BallDontLie) share one policy:
- Retry transport failures (timeouts, connection errors)
- Retry HTTP 429 and 5xx responses
- Never retry other 4xx responses (bad key, paid-tier endpoint, not found)

At most 2 attempts with a short exponential backoff.
"""
import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.core.logging import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS = 2


def is_retryable(exc: BaseException) -> bool:
    """
    Check whether a failed provider request is worth repeating.

    Examples:
        >>> is_retryable(httpx.ConnectTimeout("timed out"))
        True
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


def error_type(exc: BaseException) -> str:
    """Short label for a provider failure, used in logs and metrics."""
    if isinstance(exc, httpx.HTTPStatusError):
        return f"http_{exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, httpx.TransportError):
        return "transport"
    if isinstance(exc, ValueError):
        return "invalid_json"
    return type(exc).__name__


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Retrying {retry_state.fn.__qualname__} "
        f"(attempt {retry_state.attempt_number}/{MAX_ATTEMPTS}): {exc}"
    )


provider_retry = retry(
    retry=retry_if_exception(is_retryable),
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    before_sleep=_log_retry,
    reraise=True,
)
