"""Observability: structured logging and MLflow tracing helpers."""

from zonare.observability.logging import bind_correlation_id, get_correlation_id, setup_logging
from zonare.observability.tracing import init_tracing, start_span, trace

__all__ = [
    "bind_correlation_id",
    "get_correlation_id",
    "init_tracing",
    "setup_logging",
    "start_span",
    "trace",
]
