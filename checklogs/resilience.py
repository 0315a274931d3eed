"""
Resilient delivery for CheckLogs records.

Provides exponential backoff and a deduplicating retry queue. A record whose
first send fails with a retryable error is queued once per identity key
``(message, level)`` and re-sent in the background until it is delivered or
``max_retries`` attempts have failed, at which point it is dropped.

Usage:
    from checklogs.resilience import BackoffConfig, DeliveryQueue

    queue = DeliveryQueue(
        transport,
        max_retries=3,
        backoff=BackoffConfig(base_delay=1.0),
    )

    try:
        await queue.send(record)
    except CheckLogsError:
        # First failure is always raised; retries continue in the background
        pass

    drained = await queue.flush(timeout=5.0)
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .errors import CheckLogsError, classify_failure, wrap_unknown
from .models import LogRecord
from .scheduler import AsyncioScheduler, Scheduler
from .transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


@dataclass
class BackoffConfig:
    """Configuration for exponential backoff."""

    base_delay: float = 1.0  # Delay before the first retry, in seconds
    multiplier: float = 2.0  # Exponential multiplier
    max_delay: float = 300.0  # Cap on any single delay (5 minutes)


class ExponentialBackoff:
    """
    Exponential backoff without jitter.

    The delay that follows failed attempt ``k`` is
    ``base_delay * multiplier ** (k - 1)``, capped at ``max_delay``.
    """

    def __init__(self, config: BackoffConfig | None = None):
        self.config = config or BackoffConfig()

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        delay = self.config.base_delay * (self.config.multiplier ** (attempt - 1))
        return max(0.0, min(delay, self.config.max_delay))

    def delays(self, attempts: int) -> list[float]:
        """Delays for attempts 1..attempts."""
        return [self.delay_for(k) for k in range(1, attempts + 1)]


@dataclass
class RetryItem:
    """A record waiting for redelivery."""

    record: LogRecord
    attempt: int = 1  # Failed attempts so far
    enqueued_at: float = field(default_factory=time.time)

    @property
    def identity_key(self) -> tuple[str, str]:
        return self.record.identity_key


@dataclass
class DeliveryMetrics:
    """Counters for monitoring delivery behavior."""

    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    retries_scheduled: int = 0
    dropped_items: int = 0
    last_success_time: float | None = None
    last_failure_time: float | None = None
    last_error: str | None = None


class DeliveryQueue:
    """
    Sends records through a transport and redelivers transient failures.

    All state lives on one event loop. Queue mutations happen between awaits,
    so no locking is needed.
    """

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff: BackoffConfig | None = None,
        silent: bool = False,
        clock: Callable[[], float] = time.time,
        name: str = "default",
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.transport = transport
        self.scheduler = scheduler or AsyncioScheduler()
        self.max_retries = max_retries
        self.backoff = ExponentialBackoff(backoff)
        self.silent = silent
        self.name = name
        self._clock = clock
        self._items: dict[tuple[str, str], RetryItem] = {}
        self._metrics = DeliveryMetrics()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, identity_key: tuple[str, str]) -> bool:
        return identity_key in self._items

    @property
    def pending(self) -> list[RetryItem]:
        return list(self._items.values())

    async def send(self, record: LogRecord) -> dict[str, Any]:
        """
        Deliver a record now, queueing it for retry on a transient failure.

        Returns:
            The transport's response.

        Raises:
            CheckLogsError: the first attempt's failure, always.
        """
        try:
            result = await self._attempt(record)
        except CheckLogsError as error:
            self._log_failure(1, error)
            if classify_failure(error).retryable:
                self._enqueue(record)
            raise

        self._items.pop(record.identity_key, None)
        return result

    async def _attempt(self, record: LogRecord) -> dict[str, Any]:
        """One transport call, with metrics and uniform error wrapping."""
        self._metrics.total_attempts += 1
        try:
            result = await self.transport.send(record.to_payload())
        except Exception as exc:
            error = wrap_unknown(exc)
            self._metrics.failed_attempts += 1
            self._metrics.last_failure_time = self._clock()
            self._metrics.last_error = error.message
            if error is exc:
                raise
            raise error from exc

        self._metrics.successful_attempts += 1
        self._metrics.last_success_time = self._clock()
        return result

    def _enqueue(self, record: LogRecord):
        key = record.identity_key
        if key in self._items:
            logger.debug(f"Retry already pending for {key!r}, not queueing again")
            return
        if self.max_retries <= 1:
            return

        item = RetryItem(record=record, attempt=1, enqueued_at=self._clock())
        self._items[key] = item
        self._schedule(item)

    def _schedule(self, item: RetryItem):
        delay = self.backoff.delay_for(item.attempt)
        self._metrics.retries_scheduled += 1
        logger.debug(f"Retrying {item.identity_key!r} in {delay:.2f}s (attempt {item.attempt + 1})")
        self.scheduler.after(delay, lambda: self._retry(item))

    async def _retry(self, item: RetryItem):
        key = item.identity_key
        if self._items.get(key) is not item:
            # Cleared or delivered since this retry was scheduled
            return

        attempt = item.attempt + 1
        try:
            await self._attempt(item.record)
        except CheckLogsError as error:
            self._log_failure(attempt, error)
            if self._items.get(key) is not item:
                return
            if classify_failure(error).retryable and attempt < self.max_retries:
                item.attempt = attempt
                self._schedule(item)
            else:
                del self._items[key]
                self._metrics.dropped_items += 1
                logger.debug(f"Dropped {key!r} after {attempt} attempts")
            return

        self._items.pop(key, None)

    def _log_failure(self, attempt: int, error: CheckLogsError):
        if not self.silent:
            logger.error(f"Failed to send log to CheckLogs (attempt {attempt}): {error.message}")

    def status(self) -> dict[str, Any]:
        """Pending retries, without record context."""
        return {
            "count": len(self._items),
            "items": [
                {
                    "message": item.record.message,
                    "level": item.record.level_name,
                    "attempt": item.attempt,
                    "enqueued_at": datetime.fromtimestamp(item.enqueued_at, UTC).isoformat(),
                }
                for item in self._items.values()
            ],
        }

    async def flush(self, timeout: float = 30.0, poll_interval: float = 0.1) -> bool:
        """
        Wait for the queue to drain.

        Retries are not cancelled when the timeout elapses; this only bounds
        how long the caller waits.

        Returns:
            True if the queue is empty, False if the timeout elapsed first.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._items:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_interval, remaining))
        return not self._items

    def clear(self):
        """Drop every pending retry without attempting delivery."""
        if self._items:
            logger.info(f"Clearing {len(self._items)} pending retries from '{self.name}'")
        self._items.clear()

    def get_metrics(self) -> dict[str, Any]:
        """Delivery counters plus current queue depth."""
        m = self._metrics
        return {
            "name": self.name,
            "pending": len(self._items),
            "totals": {
                "attempts": m.total_attempts,
                "successes": m.successful_attempts,
                "failures": m.failed_attempts,
                "retries_scheduled": m.retries_scheduled,
                "dropped": m.dropped_items,
            },
            "timing": {
                "last_success": m.last_success_time,
                "last_failure": m.last_failure_time,
            },
            "last_error": m.last_error,
        }
