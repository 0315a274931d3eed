"""
Analytics over CheckLogs usage statistics.

The module-level functions are pure: they take the level or daily series of
a StatsSnapshot and return derived values. CheckLogsStats fetches a fresh
snapshot from a StatsSource on every call and never caches results.
"""

import asyncio
import logging
import math
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from .models import (
    ERROR_LEVELS,
    AnalyticsResult,
    ApplicationInfo,
    DailyCount,
    LevelCount,
    LevelFrequency,
    StatsSnapshot,
    TrendAnalysis,
)
from .transport import StatsSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

TREND_WINDOW_DAYS = 7
TREND_THRESHOLD = 20.0  # Percent change separating stable from a trend

INCREASING = "increasing"
DECREASING = "decreasing"
STABLE = "stable"
INSUFFICIENT_DATA = "insufficient_data"

_ERROR_LEVEL_NAMES = frozenset(level.value for level in ERROR_LEVELS)


def round2(value: float) -> float:
    """Round to 2 decimal places, halves rounded up."""
    return math.floor(value * 100 + 0.5) / 100


def error_rate(levels: Sequence[LevelCount]) -> float:
    """Percentage of error and critical logs; 0 when there are no logs."""
    total = 0
    errors = 0
    for stat in levels:
        total += stat.count
        if stat.level in _ERROR_LEVEL_NAMES:
            errors += stat.count
    return errors / total * 100 if total > 0 else 0


def most_frequent_level(levels: Sequence[LevelCount]) -> LevelFrequency | None:
    """Level with the highest count; the first one wins a tie."""
    if not levels:
        return None

    top = levels[0]
    for stat in levels[1:]:
        if stat.count > top.count:
            top = stat

    total = sum(stat.count for stat in levels)
    percentage = top.count / total * 100 if total > 0 else 0
    return LevelFrequency(level=top.level, count=top.count, percentage=round2(percentage))


def average_logs_per_day(daily: Sequence[DailyCount]) -> float:
    if not daily:
        return 0
    return round2(sum(day.count for day in daily) / len(daily))


def peak_day(daily: Sequence[DailyCount]) -> DailyCount | None:
    """Day with the most logs; the first one wins a tie."""
    if not daily:
        return None

    peak = daily[0]
    for day in daily[1:]:
        if day.count > peak.count:
            peak = day
    return peak


def _date_key(day: DailyCount) -> datetime:
    try:
        parsed = datetime.fromisoformat(day.date)
    except ValueError:
        logger.debug(f"Unparseable date in daily stats: {day.date!r}")
        return datetime.min
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def trend(daily: Sequence[DailyCount]) -> TrendAnalysis:
    """
    Compare the most recent 7 days against the 7 days before them.

    Needs at least 14 daily entries. The input is sorted by date, most
    recent first, without being modified.
    """
    if len(daily) < 2 * TREND_WINDOW_DAYS:
        return TrendAnalysis(trend=INSUFFICIENT_DATA, change=0, last_week=0, previous_week=0)

    ordered = sorted(daily, key=_date_key, reverse=True)
    last_week = sum(day.count for day in ordered[:TREND_WINDOW_DAYS])
    previous_week = sum(day.count for day in ordered[TREND_WINDOW_DAYS : 2 * TREND_WINDOW_DAYS])

    change = (last_week - previous_week) / previous_week * 100 if previous_week > 0 else 0

    if change > TREND_THRESHOLD:
        direction = INCREASING
    elif change < -TREND_THRESHOLD:
        direction = DECREASING
    else:
        direction = STABLE

    return TrendAnalysis(
        trend=direction,
        change=round2(change),
        last_week=last_week,
        previous_week=previous_week,
    )


async def _compute(func: Callable[[Sequence[Any]], T], series: Sequence[Any]) -> T:
    return func(series)


class CheckLogsStats:
    """Statistics and analytics for the application's logs."""

    def __init__(self, source: StatsSource):
        self.source = source

    async def get_stats(self) -> dict[str, Any]:
        """Raw stats endpoint response."""
        return await self.source.fetch_stats()

    async def get_snapshot(self) -> StatsSnapshot:
        return StatsSnapshot.from_response(await self.get_stats())

    async def get_stats_by_level(self) -> list[LevelCount]:
        return (await self.get_snapshot()).stats_by_level

    async def get_daily_stats(self) -> list[DailyCount]:
        return (await self.get_snapshot()).daily_stats

    async def get_total_logs(self) -> int:
        return (await self.get_snapshot()).total_logs

    async def get_logs_today(self) -> int:
        return (await self.get_snapshot()).logs_today

    async def get_application_info(self) -> ApplicationInfo | None:
        return (await self.get_snapshot()).application

    async def get_error_rate(self) -> float:
        return error_rate(await self.get_stats_by_level())

    async def get_most_frequent_level(self) -> LevelFrequency | None:
        return most_frequent_level(await self.get_stats_by_level())

    async def get_average_logs_per_day(self) -> float:
        return average_logs_per_day(await self.get_daily_stats())

    async def get_peak_day(self) -> DailyCount | None:
        return peak_day(await self.get_daily_stats())

    async def get_trend(self) -> TrendAnalysis:
        return trend(await self.get_daily_stats())

    async def summary(self) -> dict[str, Any]:
        """
        Snapshot fields plus an ``analytics`` section.

        The snapshot is fetched once; the individual analytics are computed
        concurrently from it.
        """
        snapshot = await self.get_snapshot()
        levels = snapshot.stats_by_level
        daily = snapshot.daily_stats

        rate, frequent, average, peak, direction = await asyncio.gather(
            _compute(error_rate, levels),
            _compute(most_frequent_level, levels),
            _compute(average_logs_per_day, daily),
            _compute(peak_day, daily),
            _compute(trend, daily),
        )
        analytics = AnalyticsResult(
            error_rate=rate,
            most_frequent_level=frequent,
            average_logs_per_day=average,
            peak_day=peak,
            trend=direction,
        )
        return {**snapshot.model_dump(), "analytics": analytics.model_dump()}
