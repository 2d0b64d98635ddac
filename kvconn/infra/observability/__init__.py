"""Observability infrastructure for kvconn.

Provides structured logging and metrics for monitoring command dispatch
and connection lifecycle in production deployments.
"""

from kvconn.infra.observability.logging import (
    CorrelationIDFilter,
    JSONFormatter,
    NO_CORRELATION_ID,
    correlation_id_var,
    correlation_scope,
    setup_logging,
)
from kvconn.infra.observability.metrics import (
    get_metrics_text,
    get_registry,
    record_command,
    record_connection_error,
    record_connection_opened,
    record_pool_cleared,
    record_retry,
)

__all__ = [
    # Logging
    "NO_CORRELATION_ID",
    "correlation_id_var",
    "correlation_scope",
    "CorrelationIDFilter",
    "JSONFormatter",
    "setup_logging",
    # Metrics
    "get_registry",
    "get_metrics_text",
    "record_command",
    "record_connection_error",
    "record_connection_opened",
    "record_pool_cleared",
    "record_retry",
]
