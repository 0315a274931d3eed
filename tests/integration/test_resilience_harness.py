"""
Integration test harness for delivery resilience.

Runs a real HTTP endpoint in a thread and drives CheckLogsLogger through
HttpTransport and the asyncio scheduler, verifying that outages are retried,
rejected records are not, and duplicates are collapsed end-to-end.
"""

import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from checklogs import BackoffConfig, CheckLogsLogger
from checklogs.errors import ApiError, NetworkError
from tests.mocks import MockStats, daily_series

FAST_BACKOFF = BackoffConfig(base_delay=0.05, max_delay=0.2)


class MockEndpointHandler(BaseHTTPRequestHandler):
    """HTTP handler that can simulate various failure modes."""

    # Class-level state for controlling behavior
    failure_mode = None  # None, "503", "400"
    failures_left = 0  # Fail this many requests with 503, then recover
    request_count = 0
    received_logs = []
    auth_headers = []
    lock = threading.Lock()

    def log_message(self, format, *args):
        """Suppress HTTP server logs."""
        pass

    def _reply(self, status: int, body: dict):
        data = json.dumps(body).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_POST(self):
        content_length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(content_length)

        with self.lock:
            MockEndpointHandler.request_count += 1
            MockEndpointHandler.auth_headers.append(self.headers.get("Authorization"))
            if MockEndpointHandler.failures_left > 0:
                MockEndpointHandler.failures_left -= 1
                mode = "503"
            else:
                mode = self.failure_mode

        if mode == "503":
            self._reply(503, {"error": {"message": "Service Unavailable", "code": "DOWN"}})
            return

        if mode == "400":
            self._reply(400, {"error": {"message": "Invalid level", "code": "VALIDATION_ERROR"}})
            return

        record = json.loads(body)
        with self.lock:
            MockEndpointHandler.received_logs.append(record)
            log_id = len(MockEndpointHandler.received_logs)

        self._reply(201, {"success": True, "data": {"log_id": log_id}})

    def do_GET(self):
        if "stats=1" in self.path:
            daily = daily_series([10, 20, 10, 20, 10, 20, 10] + [20] * 7)
            self._reply(200, MockStats(daily=daily).to_response())
            return
        self._reply(200, {"success": True, "data": {"logs": []}})

    @classmethod
    def reset(cls):
        """Reset all state."""
        cls.failure_mode = None
        cls.failures_left = 0
        cls.request_count = 0
        cls.received_logs = []
        cls.auth_headers = []


@pytest.fixture
def mock_server():
    """Start a mock HTTP server for testing."""
    MockEndpointHandler.reset()

    server = HTTPServer(("127.0.0.1", 0), MockEndpointHandler)
    port = server.server_address[1]

    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()

    yield f"http://127.0.0.1:{port}/v1/logs", MockEndpointHandler

    server.shutdown()
    server.server_close()


def make_logger(endpoint: str, **kwargs) -> CheckLogsLogger:
    kwargs.setdefault("max_retries", 3)
    return CheckLogsLogger(
        "integration-key",
        endpoint=endpoint,
        backoff=FAST_BACKOFF,
        timeout=2.0,
        console_output=False,
        silent=True,
        **kwargs,
    )


def unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestDeliveryIntegration:
    """Delivery through a real HTTP endpoint with real timers."""

    @pytest.mark.asyncio
    async def test_successful_delivery(self, mock_server):
        endpoint, handler = mock_server

        async with make_logger(endpoint, source="harness") as logger:
            result = await logger.info("Service started", {"version": "1.0"})

        assert result["data"]["log_id"] == 1
        record = handler.received_logs[0]
        assert record["message"] == "Service started"
        assert record["source"] == "harness"
        assert record["context"]["version"] == "1.0"
        assert "_hostname" in record["context"]
        assert handler.auth_headers == ["Bearer integration-key"]

    @pytest.mark.asyncio
    async def test_recovers_after_outage(self, mock_server):
        """A record rejected with 503 is redelivered once the endpoint recovers."""
        endpoint, handler = mock_server
        handler.failures_left = 1

        async with make_logger(endpoint) as logger:
            with pytest.raises(ApiError) as exc_info:
                await logger.error("Payment failed", {"order": 7})
            assert exc_info.value.status_code == 503

            assert await logger.flush(timeout=2.0) is True

        assert handler.request_count == 2
        assert [r["message"] for r in handler.received_logs] == ["Payment failed"]

    @pytest.mark.asyncio
    async def test_dropped_after_max_retries(self, mock_server):
        """A record is attempted exactly max_retries times, then dropped."""
        endpoint, handler = mock_server
        handler.failure_mode = "503"

        async with make_logger(endpoint, max_retries=3) as logger:
            with pytest.raises(ApiError):
                await logger.error("Never delivered")

            assert await logger.flush(timeout=2.0) is True
            metrics = logger.queue.get_metrics()

        assert handler.request_count == 3
        assert handler.received_logs == []
        assert metrics["totals"]["dropped"] == 1

    @pytest.mark.asyncio
    async def test_rejected_record_not_retried(self, mock_server):
        """A 4xx rejection is final."""
        endpoint, handler = mock_server
        handler.failure_mode = "400"

        async with make_logger(endpoint) as logger:
            with pytest.raises(ApiError) as exc_info:
                await logger.info("Bad record")

            assert exc_info.value.status_code == 400
            assert len(logger.queue) == 0
            assert await logger.flush(timeout=0.3) is True

        assert handler.request_count == 1

    @pytest.mark.asyncio
    async def test_duplicates_collapsed_during_outage(self, mock_server):
        """The same (message, level) failing twice is retried once."""
        endpoint, handler = mock_server
        handler.failures_left = 2

        async with make_logger(endpoint) as logger:
            for _ in range(2):
                with pytest.raises(ApiError):
                    await logger.warning("Disk almost full")

            assert len(logger.queue) == 1
            assert await logger.flush(timeout=2.0) is True

        assert handler.request_count == 3
        assert len(handler.received_logs) == 1

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        endpoint = f"http://127.0.0.1:{unused_port()}/v1/logs"

        async with make_logger(endpoint, max_retries=1) as logger:
            with pytest.raises(NetworkError) as exc_info:
                await logger.info("Nobody listening")

            assert exc_info.value.is_connection_error()
            assert len(logger.queue) == 0


class TestStatsIntegration:
    @pytest.mark.asyncio
    async def test_summary_over_http(self, mock_server):
        endpoint, _ = mock_server

        async with make_logger(endpoint) as logger:
            summary = await logger.stats.summary()

        assert summary["total_logs"] == 100
        assert summary["analytics"]["error_rate"] == 20.0
        assert summary["analytics"]["trend"]["trend"] == "increasing"
