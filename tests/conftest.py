"""
Shared fixtures.

The rate limit is raised before the app is imported so that the API tests,
which all come from the same client address, never trip it.
"""
import os

os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

import pytest
from dataset_insights.core.performance import PerformanceMonitor


@pytest.fixture(autouse=True)
def clear_performance_metrics():
    PerformanceMonitor.clear_metrics()
    yield
