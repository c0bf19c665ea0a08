"""
Retry backoff policy for failed fetches.
Rate-limited responses back off exponentially, other transient
failures wait a fixed delay.
"""

from dataclasses import dataclass
from typing import Optional
from tenacity import RetryCallState

from sitemap_scanner.config import ScannerConfig
from sitemap_scanner.errors import FetchError, RateLimitedError
from sitemap_scanner.logging_config import get_logger

logger = get_logger("crawler.backoff")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for the fetch queue. Delays are in seconds."""
    max_attempts: int = 3
    retry_delay: float = 1.0
    rate_limit_base_delay: float = 2.0
    rate_limit_max_delay: float = 10.0

    @classmethod
    def from_config(cls, config: ScannerConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, config.max_retries),
            retry_delay=config.request_delay,
            rate_limit_base_delay=config.rate_limit_base_delay,
            rate_limit_max_delay=config.rate_limit_max_delay,
        )

    def rate_limit_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Backoff after the given attempt failed with HTTP 429.
        Starts at the base delay and doubles per attempt, capped at the max.
        A Retry-After hint is honoured up to the cap.
        """
        delay = min(self.rate_limit_base_delay * (2 ** (attempt - 1)), self.rate_limit_max_delay)
        if retry_after:
            delay = min(max(delay, retry_after), self.rate_limit_max_delay)
        return delay

    def wait(self, retry_state: RetryCallState) -> float:
        """tenacity wait strategy."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitedError):
            delay = self.rate_limit_delay(retry_state.attempt_number, exc.retry_after)
        else:
            delay = self.retry_delay

        logger.warning(
            f"Fetch failed ({exc}), retrying in {delay:.2f}s",
            extra={
                "url": getattr(exc, "url", None),
                "attempt": retry_state.attempt_number,
                "http_code": getattr(exc, "http_code", None),
            }
        )
        return delay

    @staticmethod
    def is_retryable(exc: BaseException) -> bool:
        return isinstance(exc, FetchError)

