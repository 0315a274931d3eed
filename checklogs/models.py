"""
Data models for the CheckLogs SDK.

Wire-facing structures (log records, stats snapshots, analytics results) are
pydantic models so payloads coming from callers and from the API are
validated in one place.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt

MAX_MESSAGE_LENGTH = 1024
MAX_SOURCE_LENGTH = 100


class LogLevel(str, Enum):
    """Severity levels accepted by the CheckLogs API."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


ALL_LEVELS: tuple[LogLevel, ...] = tuple(LogLevel)
ERROR_LEVELS = frozenset({LogLevel.ERROR, LogLevel.CRITICAL})


class LogRecord(BaseModel):
    """A single structured log event. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    level: LogLevel = LogLevel.INFO
    context: dict[str, Any] | None = None
    source: str | None = Field(None, max_length=MAX_SOURCE_LENGTH)
    user_id: StrictInt | None = None  # Numeric strings are rejected

    @property
    def level_name(self) -> str:
        # Records built without validation may carry a plain string
        return getattr(self.level, "value", self.level)

    @property
    def identity_key(self) -> tuple[str, str]:
        """Key used to deduplicate retry queue entries."""
        return (self.message, self.level_name)

    def to_payload(self) -> dict[str, Any]:
        """Body sent to the ingestion endpoint."""
        return {
            "message": self.message,
            "level": self.level_name,
            "context": self.context or None,
            "source": self.source or None,
            "user_id": self.user_id or None,
        }


class LevelCount(BaseModel):
    level: str
    count: int = 0


class DailyCount(BaseModel):
    date: str
    count: int = 0


class ApplicationInfo(BaseModel):
    id: int | None = None
    name: str | None = None


class StatsSnapshot(BaseModel):
    """Point-in-time read of aggregate log counts."""

    model_config = ConfigDict(frozen=True)

    total_logs: int = 0
    logs_today: int = 0
    stats_by_level: list[LevelCount] = Field(default_factory=list)
    daily_stats: list[DailyCount] = Field(default_factory=list)
    application: ApplicationInfo | None = None

    @classmethod
    def from_response(cls, response: dict[str, Any]) -> "StatsSnapshot":
        """Build a snapshot from a raw stats endpoint response."""
        data = response.get("data") or {}
        return cls(
            total_logs=data.get("total_logs") or 0,
            logs_today=data.get("logs_today") or 0,
            stats_by_level=data.get("stats_by_level") or [],
            daily_stats=data.get("daily_stats") or [],
            application=data.get("application") or None,
        )


class LevelFrequency(BaseModel):
    level: str
    count: int
    percentage: float


class TrendAnalysis(BaseModel):
    trend: str  # increasing, decreasing, stable, insufficient_data
    change: float = 0
    last_week: int = 0
    previous_week: int = 0


class AnalyticsResult(BaseModel):
    """Derived statistics, recomputed on every call."""

    error_rate: float
    most_frequent_level: LevelFrequency | None
    average_logs_per_day: float
    peak_day: DailyCount | None
    trend: TrendAnalysis
