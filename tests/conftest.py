"""Shared test fixtures."""

from unittest.mock import patch

import mlflow
import pytest


@pytest.fixture(autouse=True)
def _disable_mlflow_tracing():
    """No spans recorded and nothing written to mlruns/ during tests."""
    mlflow.tracing.disable()
    yield
    mlflow.tracing.enable()


@pytest.fixture(autouse=True)
def _no_mlflow_runs():
    """mlflow.log_metrics outside an active run would start one on disk."""
    with patch("zonare.observability.tracing.mlflow.log_metrics"):
        yield
