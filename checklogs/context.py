"""
Context composition for CheckLogs loggers.

A logger owns a LoggerOptions instance. The context attached to each record
is built from the options' default context, the per-call context and the
output of the enabled metadata providers. Child loggers receive a deep copy
of their parent's options, so later changes to the parent never leak into
children that already exist.
"""

import copy
import os
import platform
import socket
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from typing import Any

from .models import ALL_LEVELS, LogLevel

MetadataProvider = Callable[[], dict[str, Any]]


def timestamp_provider() -> dict[str, Any]:
    """Current time as an ISO-8601 UTC string."""
    return {"_timestamp": datetime.now(UTC).isoformat()}


def resolve_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


def hostname_provider(hostname: str | None = None) -> MetadataProvider:
    """Return a provider reporting a fixed host name (resolved once)."""
    if hostname is None:
        hostname = resolve_hostname()

    def provide() -> dict[str, Any]:
        return {"_hostname": hostname}

    return provide


def process_provider() -> dict[str, Any]:
    """Process descriptor: pid, interpreter version and platform."""
    return {
        "_process": {
            "pid": os.getpid(),
            "version": platform.python_version(),
            "platform": platform.system().lower(),
        }
    }


def build_context(
    call_context: Mapping[str, Any] | None,
    defaults: Mapping[str, Any] | None,
    providers: Iterable[MetadataProvider] = (),
) -> dict[str, Any]:
    """
    Merge default context, call context and provider metadata.

    Later sources win on key collisions. Neither input mapping is mutated.
    """
    context: dict[str, Any] = {}
    context.update(defaults or {})
    context.update(call_context or {})
    for provider in providers:
        context.update(provider())
    return context


@dataclass
class LoggerOptions:
    """Per-logger configuration."""

    source: str | None = None
    user_id: int | None = None
    default_context: dict[str, Any] = field(default_factory=dict)
    silent: bool = False
    console_output: bool = True
    enabled_levels: list[LogLevel] = field(default_factory=lambda: list(ALL_LEVELS))
    include_timestamp: bool = True
    include_hostname: bool = True
    include_process: bool = True

    def __post_init__(self):
        self.enabled_levels = [LogLevel(level) for level in self.enabled_levels]

    def is_enabled(self, level: LogLevel | str) -> bool:
        return LogLevel(level) in self.enabled_levels

    def metadata_providers(
        self,
        timestamp: MetadataProvider = timestamp_provider,
        hostname: MetadataProvider | None = None,
        process: MetadataProvider = process_provider,
    ) -> list[MetadataProvider]:
        """Select the providers enabled by these options."""
        providers = []
        if self.include_timestamp:
            providers.append(timestamp)
        if self.include_hostname and hostname is not None:
            providers.append(hostname)
        if self.include_process:
            providers.append(process)
        return providers


OPTION_NAMES = frozenset(f.name for f in fields(LoggerOptions))


def derive_child(
    parent: LoggerOptions,
    context: Mapping[str, Any] | None = None,
    **overrides: Any,
) -> LoggerOptions:
    """
    Create options for a child logger.

    The child's default context is the parent's default context merged with
    ``context``. Every other option is copied from the parent unless given in
    ``overrides``. The result shares no mutable state with the parent.
    """
    unknown = set(overrides) - OPTION_NAMES
    if unknown:
        raise TypeError(f"Unknown logger options: {', '.join(sorted(unknown))}")

    base = copy.deepcopy(parent)
    merged = build_context(context, base.default_context)
    overrides = copy.deepcopy(overrides)
    if "default_context" in overrides:
        merged = build_context(context, overrides.pop("default_context"))
    return replace(base, default_context=merged, **overrides)
