"""Pytest configuration and shared fixtures for CheckLogs tests."""

from __future__ import annotations

import pytest

from checklogs import BackoffConfig, CheckLogsLogger, DeliveryQueue
from tests.mocks import FakeTransport, VirtualScheduler, fixed_process, fixed_timestamp


@pytest.fixture
def transport() -> FakeTransport:
    """Scriptable in-memory transport."""
    return FakeTransport()


@pytest.fixture
def scheduler() -> VirtualScheduler:
    """Scheduler driven by a virtual clock."""
    return VirtualScheduler()


@pytest.fixture
def queue(transport: FakeTransport, scheduler: VirtualScheduler) -> DeliveryQueue:
    """Delivery queue with default retry policy and virtual timers."""
    return DeliveryQueue(
        transport,
        scheduler=scheduler,
        max_retries=3,
        backoff=BackoffConfig(base_delay=1.0),
        clock=lambda: 1_700_000_000.0,
    )


@pytest.fixture
def checklogs_logger(transport: FakeTransport, scheduler: VirtualScheduler) -> CheckLogsLogger:
    """Logger with deterministic metadata providers."""
    return CheckLogsLogger(
        "test-api-key",
        transport=transport,
        scheduler=scheduler,
        hostname="test-host",
        timestamp=fixed_timestamp,
        process=fixed_process,
        console_output=False,
    )


@pytest.fixture
def sample_log_payload() -> dict:
    """Return a sample log payload for testing."""
    return {
        "message": "Test log message",
        "level": "info",
        "context": {"key": "value"},
        "source": "test-service",
        "user_id": 42,
    }
