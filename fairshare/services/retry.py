"""
Retry policy for collaborator calls.

Only StorageConnectionError is transient. Every other PersistenceError is
a definite rejection and surfaces on the first attempt.
"""

from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fairshare.config import PersistenceSettings, get_settings
from fairshare.errors import StorageConnectionError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_retry(state: RetryCallState) -> None:
    logger.warning(
        "storage_retry",
        attempt=state.attempt_number,
        error=str(state.outcome.exception()) if state.outcome else None,
    )


async def call_with_retry(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    settings: Optional[PersistenceSettings] = None,
) -> T:
    """
    Await operation(*args), retrying transient storage errors with
    exponential backoff. The last error is re-raised once attempts run out.
    """
    settings = settings or get_settings().persistence
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(settings.retry_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=settings.retry_wait_min_seconds,
            max=settings.retry_wait_max_seconds,
        ),
        retry=retry_if_exception_type(StorageConnectionError),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            return await operation(*args)
