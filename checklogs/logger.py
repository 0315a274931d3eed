"""
CheckLogs Logger - structured log shipping with background redelivery.

Usage:
    from checklogs import CheckLogsLogger, setup_logging

    # Option 1: Direct API
    logger = CheckLogsLogger(
        "your-api-key",
        source="billing",
        default_context={"service": "billing"},
    )
    await logger.info("Payment processed", {"amount": 99.99})
    await logger.flush()  # Wait for pending retries

    # Option 2: As a logging handler
    import logging

    setup_logging("your-api-key", min_level=logging.WARNING)
    logging.getLogger(__name__).warning("Disk almost full", extra={"disk": "/"})

    # Option 3: Child loggers with extra default context
    request_logger = logger.child({"request_id": "r-123"})
    await request_logger.error("Upstream timeout")
"""

import asyncio
import json
import logging
import os
import time
from collections.abc import Awaitable, Callable
from typing import Any

from .client import CheckLogsClient
from .context import (
    LoggerOptions,
    MetadataProvider,
    build_context,
    derive_child,
    hostname_provider,
    process_provider,
    resolve_hostname,
    timestamp_provider,
)
from .errors import CheckLogsError, ValidationError
from .models import LogLevel
from .resilience import DEFAULT_MAX_RETRIES, BackoffConfig, DeliveryQueue
from .scheduler import Scheduler
from .transport import DEFAULT_ENDPOINT, Transport

logger = logging.getLogger(__name__)

# Local mirror of shipped records
console_logger = logging.getLogger("checklogs.console")

CONSOLE_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}

SKIPPED = {"skipped": True, "reason": "level_disabled"}


class CheckLogsLogger:
    """
    Logger that ships records to CheckLogs.

    Composes a CheckLogsClient (validation and transport), LoggerOptions
    (default context and output settings) and a DeliveryQueue (background
    retries). Failed sends are raised to the caller once and retried in the
    background with exponential backoff.
    """

    def __init__(
        self,
        api_key: str,
        *,
        options: LoggerOptions | None = None,
        transport: Transport | None = None,
        scheduler: Scheduler | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff: BackoffConfig | None = None,
        timeout: float = 5.0,
        validate_payload: bool = True,
        endpoint: str = DEFAULT_ENDPOINT,
        hostname: str | None = None,
        timestamp: MetadataProvider = timestamp_provider,
        process: MetadataProvider = process_provider,
        **option_overrides: Any,
    ):
        """
        Initialize the logger.

        Args:
            api_key: Application API key
            options: Logger options (copied, never shared)
            transport: Transport to use (defaults to HttpTransport)
            scheduler: Timer scheduler for retries (defaults to asyncio)
            max_retries: Total delivery attempts per record
            backoff: Backoff configuration for retries
            timeout: HTTP request timeout in seconds
            validate_payload: Validate records before sending
            endpoint: CheckLogs API endpoint
            hostname: Host name reported in context (defaults to this host)
            timestamp: Metadata provider for ``_timestamp``
            process: Metadata provider for ``_process``
            **option_overrides: Any LoggerOptions field, e.g. ``source`` or ``silent``
        """
        self.client = CheckLogsClient(
            api_key,
            transport=transport,
            timeout=timeout,
            validate_payload=validate_payload,
            endpoint=endpoint,
        )
        self._owns_transport = transport is None
        self.options = derive_child(options or LoggerOptions(), **option_overrides)
        self.hostname = hostname or resolve_hostname()
        self._metadata = {
            "timestamp": timestamp,
            "hostname": hostname_provider(self.hostname),
            "process": process,
        }
        self._queue = DeliveryQueue(
            self.client.transport,
            scheduler=scheduler,
            max_retries=max_retries,
            backoff=backoff,
            silent=self.options.silent,
            name=self.options.source or "checklogs",
        )
        self._background: set[asyncio.Task] = set()

    @property
    def stats(self):
        return self.client.stats

    @property
    def queue(self) -> DeliveryQueue:
        return self._queue

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        """Wait for background sends, then close the transport if owned."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        if self._owns_transport:
            await self.client.aclose()

    def _build_context(self, context: dict[str, Any] | None) -> dict[str, Any]:
        providers = self.options.metadata_providers(**self._metadata)
        return build_context(context, self.options.default_context, providers)

    def _console_log(self, level: LogLevel, message: str, context: dict[str, Any]):
        if not self.options.console_output or self.options.silent:
            return
        line = f"[{level.value.upper()}] {message}"
        if context:
            line = f"{line} {context}"
        console_logger.log(CONSOLE_LEVELS[level], line)

    async def log(
        self,
        message: str,
        level: LogLevel | str = LogLevel.INFO,
        context: dict[str, Any] | None = None,
        source: str | None = None,
        user_id: int | None = None,
    ) -> dict[str, Any]:
        """
        Send a log entry, retrying in the background on transient failure.

        Returns:
            The API response, or ``{"skipped": True, ...}`` for a disabled level.

        Raises:
            ValidationError: the record is malformed (never retried).
            CheckLogsError: the first delivery attempt failed.
        """
        try:
            level = LogLevel(level or LogLevel.INFO)
        except ValueError as e:
            raise ValidationError(
                "level must be one of: " + ", ".join(lvl.value for lvl in LogLevel), field="level"
            ) from e

        if not self.options.is_enabled(level):
            return dict(SKIPPED)

        full_context = self._build_context(context)
        record = self.client.make_record(
            message,
            level,
            full_context,
            source or self.options.source,
            user_id or self.options.user_id,
        )
        self._console_log(level, record.message, full_context)
        return await self._queue.send(record)

    async def debug(self, message: str, context: dict[str, Any] | None = None, **options):
        """Log a DEBUG message."""
        return await self.log(message, LogLevel.DEBUG, context, **options)

    async def info(self, message: str, context: dict[str, Any] | None = None, **options):
        """Log an INFO message."""
        return await self.log(message, LogLevel.INFO, context, **options)

    async def warning(self, message: str, context: dict[str, Any] | None = None, **options):
        """Log a WARNING message."""
        return await self.log(message, LogLevel.WARNING, context, **options)

    async def error(self, message: str, context: dict[str, Any] | None = None, **options):
        """Log an ERROR message."""
        return await self.log(message, LogLevel.ERROR, context, **options)

    async def critical(self, message: str, context: dict[str, Any] | None = None, **options):
        """Log a CRITICAL message."""
        return await self.log(message, LogLevel.CRITICAL, context, **options)

    async def get_logs(self, **query) -> dict[str, Any]:
        return await self.client.get_logs(**query)

    def child(self, context: dict[str, Any] | None = None, **overrides: Any) -> "CheckLogsLogger":
        """
        Create a child logger with additional default context.

        The child shares this logger's transport and scheduler but has its
        own options and retry queue.
        """
        return CheckLogsLogger(
            self.client.api_key,
            options=derive_child(self.options, context, **overrides),
            transport=self.client.transport,
            scheduler=self._queue.scheduler,
            max_retries=self._queue.max_retries,
            backoff=self._queue.backoff.config,
            timeout=self.client.timeout,
            validate_payload=self.client.validate_payload,
            timestamp=self._metadata["timestamp"],
            process=self._metadata["process"],
            hostname=self.hostname,
        )

    def set_enabled_levels(self, levels: list[LogLevel | str]):
        self.options.enabled_levels = [LogLevel(level) for level in levels]

    def enable_console(self):
        self.options.console_output = True

    def disable_console(self):
        self.options.console_output = False

    def enable_silent(self):
        """Suppress console output and failure reports."""
        self.options.silent = True
        self.options.console_output = False
        self._queue.silent = True

    def disable_silent(self):
        self.options.silent = False
        self._queue.silent = False

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(self._quietly(coro))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _quietly(self, coro: Awaitable[Any]):
        try:
            await coro
        except CheckLogsError as e:
            # Already reported by the delivery queue
            logger.debug(f"Background log failed: {e}")

    def time(
        self,
        label: str,
        message: str,
        context: dict[str, Any] | None = None,
        level: LogLevel | str = LogLevel.INFO,
    ) -> Callable[[], float]:
        """
        Log a timer start and return a function that logs the timer end.

        Both records are sent in the background; the returned function
        returns the elapsed time in milliseconds. Must be called from a
        running event loop.
        """
        context = dict(context or {})
        started_at = int(time.time() * 1000)
        started = time.perf_counter()

        self._spawn(
            self.log(
                f"{message} [TIMER START]",
                level,
                {**context, "_timer_label": label, "_timer_start": started_at},
            )
        )

        def end() -> float:
            duration = round((time.perf_counter() - started) * 1000, 3)
            self._spawn(
                self.log(
                    f"{message} [TIMER END]",
                    level,
                    {
                        **context,
                        "_timer_label": label,
                        "_timer_start": started_at,
                        "_timer_end": int(time.time() * 1000),
                        "_timer_duration_ms": duration,
                    },
                )
            )
            return duration

        return end

    def get_retry_queue_status(self) -> dict[str, Any]:
        return self._queue.status()

    def clear_retry_queue(self):
        self._queue.clear()

    async def flush(self, timeout: float = 30.0) -> bool:
        """
        Wait for background sends and pending retries.

        Returns:
            True if everything was delivered or dropped, False on timeout.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        if self._background:
            _, pending = await asyncio.wait(set(self._background), timeout=timeout)
            if pending:
                # A send still in flight may yet fail and queue a retry
                return False
        return await self._queue.flush(max(0.0, deadline - loop.time()))


class CheckLogsHandler(logging.Handler):
    """
    Python logging handler that ships records to CheckLogs.

    Integrates with standard Python logging so existing code works without
    modification. Records are sent on the event loop: the running one when
    emitting from async code, or ``loop`` when emitting from another thread.
    """

    # LogRecord attributes that are not user-supplied ``extra`` values
    RESERVED_ATTRS = frozenset(
        {
            "name", "msg", "args", "created", "filename", "funcName", "levelname",
            "levelno", "lineno", "module", "msecs", "pathname", "process",
            "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
            "thread", "threadName", "taskName", "message", "asctime",
        }
    )

    def __init__(
        self,
        checklogs_logger: CheckLogsLogger,
        min_level: int = logging.INFO,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        super().__init__(level=min_level)
        self.checklogs_logger = checklogs_logger
        self.loop = loop

    @staticmethod
    def map_level(levelno: int) -> LogLevel:
        if levelno >= logging.CRITICAL:
            return LogLevel.CRITICAL
        if levelno >= logging.ERROR:
            return LogLevel.ERROR
        if levelno >= logging.WARNING:
            return LogLevel.WARNING
        if levelno >= logging.INFO:
            return LogLevel.INFO
        return LogLevel.DEBUG

    def emit(self, record: logging.LogRecord):
        # Never ship the SDK's own output back to CheckLogs
        if record.name == "checklogs" or record.name.startswith("checklogs."):
            return

        try:
            context: dict[str, Any] = {"logger": record.name}
            for key, value in record.__dict__.items():
                if key in self.RESERVED_ATTRS or key.startswith("_"):
                    continue
                # Only include serializable values
                if isinstance(value, str | int | float | bool | type(None)):
                    context[key] = value
                elif isinstance(value, list | dict):
                    try:
                        json.dumps(value)
                        context[key] = value
                    except (TypeError, ValueError):
                        pass
            if record.exc_info:
                context["exception"] = logging.Formatter().formatException(record.exc_info)

            # Record fields passed through ``extra``
            source = context.pop("source", None)
            user_id = context.pop("user_id", None)

            coro = self.checklogs_logger.log(
                self.format(record)[:1024],
                self.map_level(record.levelno),
                context,
                source=source if isinstance(source, str) else None,
                user_id=user_id if type(user_id) is int else None,
            )
            self._dispatch(coro)
        except Exception:
            self.handleError(record)

    def _dispatch(self, coro):
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None and (self.loop is None or self.loop is running):
            self.checklogs_logger._spawn(coro)
        elif self.loop is not None and self.loop.is_running():
            asyncio.run_coroutine_threadsafe(self.checklogs_logger._quietly(coro), self.loop)
        else:
            coro.close()
            raise RuntimeError("CheckLogsHandler needs a running event loop")


def setup_logging(
    api_key: str,
    min_level: int = logging.INFO,
    also_console: bool = True,
    loop: asyncio.AbstractEventLoop | None = None,
    **logger_kwargs: Any,
) -> CheckLogsLogger:
    """
    Set up Python logging to ship logs to CheckLogs.

    Args:
        api_key: Application API key
        min_level: Minimum log level to ship
        also_console: Also log to console (default: True)
        loop: Event loop to ship on when logging from other threads
        **logger_kwargs: Additional args passed to CheckLogsLogger

    Returns:
        CheckLogsLogger instance (for flush and retry queue status)
    """
    # The console handler below already prints every record
    logger_kwargs.setdefault("console_output", False)
    checklogs_logger = CheckLogsLogger(api_key, **logger_kwargs)

    handler = CheckLogsHandler(checklogs_logger, min_level=min_level, loop=loop)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    if also_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(console_handler)

    if root_logger.level == logging.NOTSET or root_logger.level > min_level:
        root_logger.setLevel(min_level)

    return checklogs_logger


def from_env(**logger_kwargs: Any) -> CheckLogsLogger:
    """
    Create a CheckLogsLogger from environment variables.

    Environment variables:
        CHECKLOGS_API_KEY: Application API key (required)
        CHECKLOGS_ENDPOINT: API endpoint (optional)
        CHECKLOGS_TIMEOUT: Request timeout in seconds (optional)
        CHECKLOGS_SOURCE: Default record source (optional)
    """
    api_key = os.environ.get("CHECKLOGS_API_KEY")
    if not api_key:
        raise ValueError("CHECKLOGS_API_KEY environment variable required")

    logger_kwargs.setdefault("endpoint", os.environ.get("CHECKLOGS_ENDPOINT", DEFAULT_ENDPOINT))
    if os.environ.get("CHECKLOGS_TIMEOUT"):
        logger_kwargs.setdefault("timeout", float(os.environ["CHECKLOGS_TIMEOUT"]))
    if os.environ.get("CHECKLOGS_SOURCE"):
        logger_kwargs.setdefault("source", os.environ["CHECKLOGS_SOURCE"])

    return CheckLogsLogger(api_key, **logger_kwargs)
