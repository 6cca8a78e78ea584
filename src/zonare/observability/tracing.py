"""Thin MLflow tracing wrapper used by every collaborator call.

Usage:

    from zonare.observability.tracing import trace, start_span

    @trace(name="lookup_address", span_type="CHAIN")
    async def lookup_address(...): ...

    with start_span("embed_batch", span_type="EMBEDDING") as span:
        span.set_inputs({...})
"""

import logging
from contextlib import contextmanager

import mlflow

logger = logging.getLogger(__name__)


def trace(name: str | None = None, **kwargs):
    """Decorator: wraps a sync or async function in an MLflow trace."""
    return mlflow.trace(name=name, **kwargs) if name else mlflow.trace(**kwargs)


@contextmanager
def start_span(name: str = "span", **kwargs):
    """Context manager yielding an MLflow span."""
    with mlflow.start_span(name=name, **kwargs) as span:
        yield span


def log_metrics(metrics: dict, step: int | None = None) -> None:
    """Log metrics to the active run; tracking-store failures never break a request."""
    try:
        mlflow.log_metrics(metrics, step=step)
    except Exception as e:
        logger.debug("MLflow log_metrics failed: %s", e)


def set_tracking_uri(uri: str) -> None:
    mlflow.set_tracking_uri(uri)


def set_experiment(name: str) -> None:
    mlflow.set_experiment(name)


def enable_async_logging() -> None:
    mlflow.config.enable_async_logging()


def init_tracing(tracking_uri: str, experiment_name: str) -> None:
    """Initialize MLflow tracking for the current process."""
    set_tracking_uri(tracking_uri)
    set_experiment(experiment_name)
    enable_async_logging()
    logger.info("MLflow tracing enabled: %s", tracking_uri)
