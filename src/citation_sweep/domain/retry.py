"""Bounded retries with exponential backoff and one-shot credential refresh."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from .cancellation import CancellationToken, never_cancelled
from .results import Cancelled, Failure, FailureKind, Ok, Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (TimeoutError, ConnectionError)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 1.0  # seconds before the second attempt
    multiplier: float = 2.0
    max_delay: float | None = None
    min_delay: float = 0.0  # floor, e.g. the provider's request spacing

    def delay_for(self, attempt: int) -> float:
        """Backoff after the given 1-based attempt."""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return max(delay, self.min_delay)


API_RETRY_POLICY = RetryPolicy(max_attempts=5, base_delay=1.0)
SCRAPE_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=1.5)


class RetryingExecutor:
    """Runs a single-attempt request function under a RetryPolicy.

    The request function performs exactly one attempt and returns a Result,
    or raises one of `retryable_exceptions` for transport-level errors.
    """

    def __init__(
        self,
        policy: RetryPolicy = API_RETRY_POLICY,
        refresh_credentials: Callable[[], bool] | None = None,
        retryable_exceptions: tuple[type[BaseException], ...] = DEFAULT_RETRYABLE_EXCEPTIONS,
    ) -> None:
        if policy.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.policy = policy
        self.refresh_credentials = refresh_credentials
        self.retryable_exceptions = retryable_exceptions

    def execute(
        self,
        request_fn: Callable[[], Result[T]],
        token: CancellationToken | None = None,
    ) -> Result[T]:
        token = token or never_cancelled()
        max_attempts = self.policy.max_attempts
        refreshed = False
        last: Failure | None = None

        for attempt in range(1, max_attempts + 1):
            if token.is_cancelled:
                return token.as_result()

            try:
                result = request_fn()
            except self.retryable_exceptions as e:
                kind = FailureKind.TIMEOUT if _is_timeout(e) else FailureKind.TRANSPORT
                result = Failure(kind=kind, message=f"{type(e).__name__}: {e}", code=408 if kind == FailureKind.TIMEOUT else 500)

            if isinstance(result, (Ok, Cancelled)):
                return result

            last = result
            if result.is_unauthorized:
                if refreshed or self.refresh_credentials is None:
                    logger.error("Request unauthorized, not retrying")
                    return result
                logger.warning(
                    f"Received 401 Unauthorized, attempting credential refresh. "
                    f"Attempt {attempt}/{max_attempts}"
                )
                refreshed = True
                if not self._refresh():
                    logger.error("Failed to refresh credentials, returning 401")
                    return result
            elif attempt < max_attempts:
                logger.warning(
                    f"Request failed ({result.kind.value} {result.code}: {result.message}), "
                    f"retrying. Attempt {attempt}/{max_attempts}"
                )

            if attempt == max_attempts:
                break
            if not token.sleep(self.policy.delay_for(attempt)):
                return token.as_result()

        assert last is not None
        logger.warning(f"Request failed after {max_attempts} attempts: {last.message}")
        return last

    def _refresh(self) -> bool:
        try:
            return bool(self.refresh_credentials())
        except Exception as e:
            logger.error(f"Credential refresh raised: {e}")
            return False


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, TimeoutError) or "timeout" in type(exc).__name__.lower()
