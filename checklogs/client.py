"""
CheckLogs API client.

Validates log records and sends them once through a transport. Retries,
default context and console mirroring live in CheckLogsLogger, which wraps
a client.
"""

import logging
from typing import Any

import pydantic

from .errors import ValidationError
from .models import LogLevel, LogRecord
from .stats import CheckLogsStats
from .transport import DEFAULT_ENDPOINT, HttpTransport, Transport

logger = logging.getLogger(__name__)

MAX_LOGS_LIMIT = 1000


class CheckLogsClient:
    """Main client for the CheckLogs API."""

    def __init__(
        self,
        api_key: str,
        *,
        transport: Transport | None = None,
        timeout: float = 5.0,
        validate_payload: bool = True,
        endpoint: str = DEFAULT_ENDPOINT,
    ):
        """
        Initialize the client.

        Args:
            api_key: Application API key
            transport: Transport to use (defaults to HttpTransport)
            timeout: HTTP request timeout in seconds
            validate_payload: Validate records before sending
            endpoint: CheckLogs API endpoint
        """
        if not api_key or not isinstance(api_key, str):
            raise ValidationError("API key is required and must be a string", field="api_key")

        self.api_key = api_key
        self.timeout = timeout
        self.validate_payload = validate_payload
        self.transport = transport or HttpTransport(api_key, endpoint=endpoint, timeout=timeout)
        self.stats = CheckLogsStats(self.transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self.transport.aclose()

    def make_record(
        self,
        message: str,
        level: LogLevel | str = LogLevel.INFO,
        context: dict[str, Any] | None = None,
        source: str | None = None,
        user_id: int | None = None,
    ) -> LogRecord:
        """
        Build a LogRecord.

        Raises:
            ValidationError: if validation is enabled and a field is invalid.
        """
        fields = {
            "message": message,
            "level": level or LogLevel.INFO,
            "context": context,
            "source": source,
            "user_id": user_id,
        }
        if not self.validate_payload:
            return LogRecord.model_construct(**fields)

        try:
            return LogRecord.model_validate(fields)
        except pydantic.ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or None
            raise ValidationError(f"{field}: {error['msg']}", field=field) from e

    async def send(self, record: LogRecord) -> dict[str, Any]:
        """Send a record once, without retries."""
        return await self.transport.send(record.to_payload())

    async def log(
        self,
        message: str,
        level: LogLevel | str = LogLevel.INFO,
        context: dict[str, Any] | None = None,
        source: str | None = None,
        user_id: int | None = None,
    ) -> dict[str, Any]:
        """Validate and send a log entry. Returns the API response."""
        record = self.make_record(message, level, context, source, user_id)
        return await self.send(record)

    async def get_logs(
        self,
        limit: int | None = None,
        offset: int | None = None,
        level: LogLevel | str | None = None,
        since: str | None = None,
        until: str | None = None,
    ) -> dict[str, Any]:
        """
        Retrieve logs.

        Args:
            limit: Number of logs to retrieve (capped at 1000)
            offset: Number of logs to skip
            level: Filter by log level
            since: Only logs since this ISO date
            until: Only logs until this ISO date
        """
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = min(limit, MAX_LOGS_LIMIT)
        if offset is not None:
            params["offset"] = max(offset, 0)
        if level:
            try:
                params["level"] = LogLevel(level).value
            except ValueError as e:
                raise ValidationError(f"Unknown log level: {level}", field="level") from e
        if since:
            params["since"] = since
        if until:
            params["until"] = until
        return await self.transport.fetch_logs(params)

    async def debug(self, message: str, context: dict[str, Any] | None = None, **options):
        return await self.log(message, LogLevel.DEBUG, context, **options)

    async def info(self, message: str, context: dict[str, Any] | None = None, **options):
        return await self.log(message, LogLevel.INFO, context, **options)

    async def warning(self, message: str, context: dict[str, Any] | None = None, **options):
        return await self.log(message, LogLevel.WARNING, context, **options)

    async def error(self, message: str, context: dict[str, Any] | None = None, **options):
        return await self.log(message, LogLevel.ERROR, context, **options)

    async def critical(self, message: str, context: dict[str, Any] | None = None, **options):
        return await self.log(message, LogLevel.CRITICAL, context, **options)
