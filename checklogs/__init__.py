"""
CheckLogs SDK - Ship structured logs to CheckLogs and read usage analytics.

This package provides:
- CheckLogsLogger: Structured logging with default context and background retries
- CheckLogsClient: Validated single-shot API access
- CheckLogsStats: Error rate, trend and peak analytics
- resilience: Deduplicating retry queue with exponential backoff

Usage:
    from checklogs import create_logger

    logger = create_logger("your-api-key", source="billing")
    await logger.info("Service started")
    summary = await logger.stats.summary()
"""

from .client import CheckLogsClient
from .context import LoggerOptions, build_context, derive_child
from .errors import (
    ApiError,
    CheckLogsError,
    FailureKind,
    NetworkError,
    ValidationError,
    classify_failure,
)
from .logger import CheckLogsHandler, CheckLogsLogger, from_env, setup_logging
from .models import AnalyticsResult, LogLevel, LogRecord, StatsSnapshot, TrendAnalysis
from .resilience import BackoffConfig, DeliveryQueue, ExponentialBackoff, RetryItem
from .scheduler import AsyncioScheduler, Scheduler
from .stats import CheckLogsStats
from .transport import DEFAULT_ENDPOINT, HttpTransport, StatsSource, Transport, __version__


def create_client(api_key: str, **options) -> CheckLogsClient:
    """Create a new CheckLogs client."""
    return CheckLogsClient(api_key, **options)


def create_logger(api_key: str, **options) -> CheckLogsLogger:
    """Create a new CheckLogs logger."""
    return CheckLogsLogger(api_key, **options)


__all__ = [
    # Entry points
    "create_client",
    "create_logger",
    "CheckLogsClient",
    "CheckLogsLogger",
    "CheckLogsHandler",
    "CheckLogsStats",
    "setup_logging",
    "from_env",
    # Context
    "LoggerOptions",
    "build_context",
    "derive_child",
    # Delivery
    "BackoffConfig",
    "DeliveryQueue",
    "ExponentialBackoff",
    "RetryItem",
    "Scheduler",
    "AsyncioScheduler",
    # Transport
    "Transport",
    "StatsSource",
    "HttpTransport",
    "DEFAULT_ENDPOINT",
    # Models
    "LogLevel",
    "LogRecord",
    "StatsSnapshot",
    "AnalyticsResult",
    "TrendAnalysis",
    # Errors
    "CheckLogsError",
    "ValidationError",
    "ApiError",
    "NetworkError",
    "FailureKind",
    "classify_failure",
]
