"""
Bounded fetch queue.
Limits concurrent outbound requests, paces admissions, coalesces
duplicate in-flight fetches and retries transient failures.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt

from sitemap_scanner.config import ScannerConfig
from sitemap_scanner.crawler.backoff import RetryPolicy
from sitemap_scanner.errors import FetchTimeoutError
from sitemap_scanner.logging_config import get_logger

logger = get_logger("crawler.fetch_queue")


@dataclass(frozen=True)
class FetchTask:
    """One submitted fetch. key is the normalized URL."""
    key: str
    operation: Callable[[], Awaitable[Any]]
    timeout: Optional[float] = None


@dataclass
class _InFlight:
    task: asyncio.Task
    waiters: int = 0


class FetchQueue:
    """
    Concurrency-limited, retrying fetch scheduler.

    One instance is shared by every caller that should be throttled
    together. All slot accounting goes through _admit/_release.
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        min_delay: float = 1.0,
        policy: Optional[RetryPolicy] = None,
        default_timeout: Optional[float] = 30.0
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.min_delay = min_delay
        self.policy = policy or RetryPolicy(retry_delay=min_delay)
        self.default_timeout = default_timeout

        self._slots = asyncio.Semaphore(max_concurrent)
        self._admission_lock = asyncio.Lock()
        self._active = 0
        self._last_admitted = 0.0
        self._in_flight: Dict[str, _InFlight] = {}

        # Stats
        self.peak_active = 0
        self.requests_started = 0

    @classmethod
    def from_config(cls, config: ScannerConfig) -> "FetchQueue":
        return cls(
            max_concurrent=config.max_concurrent_requests,
            min_delay=config.request_delay,
            policy=RetryPolicy.from_config(config),
            default_timeout=config.sitemap_timeout,
        )

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_keys(self) -> list:
        return list(self._in_flight)

    async def submit(
        self,
        key: str,
        operation: Callable[[], Awaitable[Any]],
        timeout: Optional[float] = None
    ) -> Any:
        """
        Run operation under the queue's limits and return its result.

        A submission whose key is already in flight waits for that fetch
        and shares its result or error instead of starting another one.

        Args:
            key: Dedup key, normally the normalized URL
            operation: Zero-argument coroutine function performing one attempt
            timeout: Per-attempt timeout in seconds

        Returns:
            The operation's result

        Raises:
            FetchError: the last failure once retries are exhausted
        """
        entry = self._in_flight.get(key)
        if entry is not None and entry.task.cancelled():
            self._forget(key, entry)
            entry = None
        if entry is None:
            fetch_task = FetchTask(
                key=key,
                operation=operation,
                timeout=timeout if timeout is not None else self.default_timeout,
            )
            entry = _InFlight(task=asyncio.ensure_future(self._run(fetch_task)))
            self._in_flight[key] = entry
            entry.task.add_done_callback(lambda _t, k=key, e=entry: self._forget(k, e))
        else:
            logger.debug("Joining in-flight fetch", extra={"url": key})

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.task)
        finally:
            entry.waiters -= 1
            # Nobody is waiting any more (all callers cancelled): stop the fetch
            if entry.waiters == 0 and not entry.task.done():
                self._forget(key, entry)
                entry.task.cancel()

    def _forget(self, key: str, entry: _InFlight) -> None:
        if self._in_flight.get(key) is entry:
            del self._in_flight[key]

    async def _run(self, fetch_task: FetchTask) -> Any:
        result = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self.policy.wait,
            retry=retry_if_exception(self.policy.is_retryable),
            reraise=True,
        ):
            with attempt:
                async with self._slot():
                    result = await self._attempt(fetch_task)
        return result

    async def _attempt(self, fetch_task: FetchTask) -> Any:
        self.requests_started += 1
        try:
            if fetch_task.timeout is None:
                return await fetch_task.operation()
            return await asyncio.wait_for(fetch_task.operation(), timeout=fetch_task.timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(
                f"Request timed out after {fetch_task.timeout}s",
                url=fetch_task.key
            ) from e

    @asynccontextmanager
    async def _slot(self):
        """Hold one concurrency slot for the duration of an attempt."""
        async with self._slots:
            await self._admit()
            try:
                yield
            finally:
                self._release()

    async def _admit(self) -> None:
        async with self._admission_lock:
            if self._active > 0 and self.min_delay > 0:
                wait_time = self.min_delay - (time.monotonic() - self._last_admitted)
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
            self._active += 1
            self._last_admitted = time.monotonic()
            self.peak_active = max(self.peak_active, self._active)

    def _release(self) -> None:
        self._active -= 1
