#!/usr/bin/env python3
"""
CheckLogs Stats Report CLI Tool
Fetches the application's usage statistics and displays the analytics summary
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from checklogs import CheckLogsClient, CheckLogsError
from checklogs.transport import DEFAULT_ENDPOINT

# Rich console for pretty output
console = Console()

TREND_COLORS = {
    "increasing": "red",
    "decreasing": "green",
    "stable": "cyan",
    "insufficient_data": "dim",
}


def display_levels_table(summary: dict[str, Any]):
    """Display per-level counts"""
    table = Table(title="Logs by Level", show_header=True)
    table.add_column("Level", style="cyan")
    table.add_column("Count", justify="right")

    for stat in summary["stats_by_level"]:
        table.add_row(stat["level"], str(stat["count"]))

    console.print(table)


def display_analytics(summary: dict[str, Any]):
    """Display derived analytics"""
    analytics = summary["analytics"]
    trend = analytics["trend"]
    frequent = analytics["most_frequent_level"]
    peak = analytics["peak_day"]

    lines = [
        f"Total logs: [bold]{summary['total_logs']}[/bold]",
        f"Logs today: {summary['logs_today']}",
        f"Error rate: {analytics['error_rate']:.2f}%",
        f"Average per day: {analytics['average_logs_per_day']}",
    ]
    if frequent:
        lines.append(
            f"Most frequent level: {frequent['level']} "
            f"({frequent['count']}, {frequent['percentage']}%)"
        )
    if peak:
        lines.append(f"Peak day: {peak['date']} ({peak['count']} logs)")

    color = TREND_COLORS.get(trend["trend"], "white")
    lines.append(
        f"Trend: [{color}]{trend['trend']}[/{color}] "
        f"({trend['change']:+}%, {trend['last_week']} vs {trend['previous_week']})"
    )

    console.print(Panel("\n".join(lines), title="Analytics", border_style="magenta"))


async def main():
    parser = argparse.ArgumentParser(description="CheckLogs Stats Report")
    parser.add_argument("--api-key",
                        default=os.getenv("CHECKLOGS_API_KEY"),
                        help="Application API key")
    parser.add_argument("--endpoint",
                        default=os.getenv("CHECKLOGS_ENDPOINT", DEFAULT_ENDPOINT),
                        help="CheckLogs API endpoint")
    parser.add_argument("--json", action="store_true",
                        help="Output in JSON format")

    args = parser.parse_args()

    if not args.api_key:
        console.print("[red]Error: --api-key or CHECKLOGS_API_KEY is required[/red]")
        sys.exit(2)

    async with CheckLogsClient(args.api_key, endpoint=args.endpoint) as client:
        try:
            summary = await client.stats.summary()
        except CheckLogsError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    if args.json:
        print(json.dumps(summary, default=str, indent=2))
        return

    console.print("\n[bold magenta]CheckLogs Stats Report[/bold magenta]\n")
    display_levels_table(summary)
    display_analytics(summary)


if __name__ == "__main__":
    asyncio.run(main())
