"""Prometheus metrics for observability.

Provides metrics collection for command dispatch, retries and connection
lifecycle of the managed Redis connection.
"""

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global registry for metrics
_registry = CollectorRegistry()


# Command Metrics
commands_total = Counter(
    "kvconn_commands_total",
    "Total number of commands dispatched",
    ["command", "status"],
    registry=_registry,
)

command_duration_seconds = Histogram(
    "kvconn_command_duration_seconds",
    "Duration of dispatched commands in seconds (including retries)",
    ["command"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
    registry=_registry,
)

command_retries_total = Counter(
    "kvconn_command_retries_total",
    "Total number of command retries after a transient failure",
    ["command"],
    registry=_registry,
)

# Connection Metrics
connections_opened_total = Counter(
    "kvconn_connections_opened_total",
    "Total number of connections opened",
    registry=_registry,
)

connection_errors_total = Counter(
    "kvconn_connection_errors_total",
    "Total number of failed connection attempts",
    ["stage"],
    registry=_registry,
)

pool_size_entries = Gauge(
    "kvconn_pool_size_entries",
    "Current number of handles in the connection pool",
    registry=_registry,
)


def get_registry() -> CollectorRegistry:
    """Get the metrics registry.

    Returns:
        Prometheus collector registry
    """
    return _registry


def get_metrics_text() -> str:
    """Get metrics in Prometheus text format.

    Returns:
        Metrics in Prometheus exposition format
    """
    return generate_latest(_registry).decode("utf-8")


def record_command(command: str, duration: float, success: bool) -> None:
    """Record metrics for a dispatched command.

    Args:
        command: Command name (lower-case)
        duration: Total duration in seconds
        success: Whether the command succeeded
    """
    status = "success" if success else "error"
    commands_total.labels(command=command, status=status).inc()
    command_duration_seconds.labels(command=command).observe(duration)


def record_retry(command: str) -> None:
    """Record a retry of a command after a transient failure."""
    command_retries_total.labels(command=command).inc()


def record_connection_opened(pool_size: int) -> None:
    """Record a successful open.

    Args:
        pool_size: Pool size after the new handle was installed
    """
    connections_opened_total.inc()
    pool_size_entries.set(pool_size)


def record_connection_error(stage: str) -> None:
    """Record a failed open.

    Args:
        stage: Failing step (dial/auth/select)
    """
    connection_errors_total.labels(stage=stage).inc()


def record_pool_cleared() -> None:
    pool_size_entries.set(0)


__all__ = [
    "get_metrics_text",
    "get_registry",
    "record_command",
    "record_connection_error",
    "record_connection_opened",
    "record_pool_cleared",
    "record_retry",
]
