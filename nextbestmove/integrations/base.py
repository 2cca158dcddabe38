"""Shared plumbing for the HTTP integrations (calendar free/busy providers).

IntegrationBase gives every client:
    - is_configured(), so callers can skip a provider with no credentials
    - with_retry(), exponential backoff over transport errors and over
      throttled / server-error responses (429, 5xx), honouring Retry-After

RateLimiter keeps a client under a provider's per-minute quota.
"""

import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Callable, Optional, TypeVar

from nextbestmove.core.exceptions import IntegrationError
from nextbestmove.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Google and Graph both use these for throttling and transient outages.
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def retry_after_seconds(response: Any) -> Optional[float]:
    """Seconds requested by a numeric Retry-After header, if present.

    HTTP-date values are ignored; the caller falls back to its own backoff.
    """
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("Retry-After")
    if not isinstance(value, str):
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class IntegrationBase(ABC):
    """Abstract base class for external integrations.

    Subclasses must implement:
        - is_configured(): Check if credentials are present
    """

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if required credentials/configuration are present."""

    def with_retry(
        self,
        func: Callable[[], T],
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exceptions: tuple = (Exception,),
        retry_statuses: frozenset = RETRYABLE_STATUS_CODES,
    ) -> T:
        """Call func, retrying with exponential backoff.

        A call is retried when it raises one of ``exceptions`` or returns an
        object whose ``status_code`` is in ``retry_statuses``. For a retried
        response, a Retry-After header replaces the backoff delay (still
        capped at max_delay).

        Args:
            func: Zero-argument callable performing one attempt
            max_retries: Retries after the first attempt
            base_delay: Initial delay between retries (seconds)
            max_delay: Maximum delay between retries
            exceptions: Exception types that trigger a retry
            retry_statuses: Response status codes that trigger a retry

        Returns:
            The first non-retryable result. When retries run out on a
            retryable status, the last response is returned so the caller
            can report it.

        Raises:
            IntegrationError: If the last attempt raised
        """
        delay = base_delay
        attempt = 0

        while True:
            try:
                result = func()
            except exceptions as e:
                if attempt >= max_retries:
                    raise IntegrationError(
                        f"Operation failed after {attempt + 1} attempts: {e}"
                    ) from e
                reason = str(e)
                wait = delay
            else:
                status = getattr(result, "status_code", None)
                if status not in retry_statuses or attempt >= max_retries:
                    return result
                reason = f"HTTP {status}"
                requested = retry_after_seconds(result)
                wait = min(requested, max_delay) if requested is not None else delay

            logger.warning(
                f"Retry {attempt + 1}/{max_retries} after {wait}s: {reason}",
                extra={"context": {"attempt": attempt + 1, "delay": wait, "reason": reason}},
            )
            time.sleep(wait)
            delay = min(delay * 2, max_delay)
            attempt += 1


class RateLimiter:
    """Sliding one-minute window over recent call times.

    Attributes:
        calls_per_minute: Maximum calls allowed per minute
    """

    WINDOW_SECONDS = 60.0

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = calls_per_minute
        self._call_times: deque[float] = deque()

    def wait_if_needed(self) -> float:
        """Block until another call fits in the window and record it.

        Returns:
            Seconds slept (0.0 when under quota)
        """
        slept = 0.0
        now = time.monotonic()
        while self._call_times and now - self._call_times[0] >= self.WINDOW_SECONDS:
            self._call_times.popleft()

        if len(self._call_times) >= self.calls_per_minute:
            slept = self.WINDOW_SECONDS - (now - self._call_times[0])
            if slept > 0:
                logger.debug(f"Rate limit: sleeping {slept:.1f}s")
                time.sleep(slept)
            self._call_times.popleft()

        self._call_times.append(time.monotonic())
        return max(slept, 0.0)
