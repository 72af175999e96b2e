"""Retry-with-backoff policy for calls against the metrics API."""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from kubernetes.client.rest import ApiException
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from meshusage.core.cancellation import CancellationToken
from meshusage.core.exceptions import CollectionCancelled, MetricsException

logger = structlog.get_logger(__name__)

T = TypeVar('T')

# not found, forbidden, unauthorized: these never resolve by waiting
PERMANENT_STATUS_CODES = frozenset({401, 403, 404})


def is_permanent_error(error: BaseException) -> bool:
    """Whether ``error`` is an API error that retrying cannot fix."""
    return isinstance(error, ApiException) and error.status in PERMANENT_STATUS_CODES


def _is_retryable(error: BaseException) -> bool:
    if not isinstance(error, Exception):
        return False
    if isinstance(error, CollectionCancelled):
        return False
    return not is_permanent_error(error)


class MetricsRetryPolicy:
    """Exponential backoff without jitter, aware of the shared cancellation token.

    With the defaults a call is attempted at most three times, sleeping 0.5s
    and then 1s between attempts.
    """

    def __init__(self,
                 token: CancellationToken,
                 max_attempts: int = 3,
                 base_delay: float = 0.5,
                 sleep: Optional[Callable[[float], Awaitable[None]]] = None):
        self.token = token
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep or token.sleep

    async def call(self, fn: Callable[[], Awaitable[T]], description: str) -> T:
        """Run ``fn`` under the policy; ``description`` names the target in logs and errors."""
        log = logger.bind(target=description)

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            log.warning(
                f"Failed to get {description} (attempt {retry_state.attempt_number}/{self.max_attempts})",
                error=str(error)
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    self.token.raise_if_cancelled()
                    return await fn()
        except RetryError as e:
            last_error = e.last_attempt.exception()
            log.warning(f"Giving up on {description}", attempts=self.max_attempts, error=str(last_error))
            raise MetricsException(
                f"failed to get {description} after {self.max_attempts} attempts: {last_error}",
                {"attempts": self.max_attempts}
            ) from last_error
        except Exception as e:
            if is_permanent_error(e):
                log.warning(f"Permanent error getting {description}", error=str(e))
            raise

        # every attempt above either returns or raises
        raise MetricsException(f"no attempts made for {description}")
