"""
Tests for performance monitoring.
"""
import asyncio
import time
from types import SimpleNamespace

import pytest
from dataset_insights.core import performance
from dataset_insights.core.performance import PerformanceMonitor, track_performance


def test_performance_monitor_record():
    """Test recording performance metrics."""
    PerformanceMonitor.record_metric("test_metric", 1.5, {"test": "data"})
    PerformanceMonitor.record_metric("test_metric", 2.0)
    PerformanceMonitor.record_metric("test_metric", 0.5)

    stats = PerformanceMonitor.get_stats("test_metric")

    assert stats is not None
    assert stats["count"] == 3
    assert stats["min"] == 0.5
    assert stats["max"] == 2.0
    assert stats["mean"] == pytest.approx(1.333, rel=0.01)
    assert stats["p50"] == 1.5


def test_performance_monitor_caps_samples(monkeypatch):
    """Only the most recent samples are kept."""
    monkeypatch.setattr(performance, "MAX_SAMPLES", 3)

    for value in (10.0, 1.0, 2.0, 3.0):
        PerformanceMonitor.record_metric("capped", value)

    stats = PerformanceMonitor.get_stats("capped")
    assert stats["count"] == 3
    assert stats["max"] == 3.0


def test_performance_decorator_sync():
    """Test performance tracking decorator on sync function."""
    @track_performance("test_function")
    def test_func(x: int) -> int:
        time.sleep(0.01)
        return x * 2

    assert test_func(5) == 10

    stats = PerformanceMonitor.get_stats("test_function")
    assert stats is not None
    assert stats["count"] == 1
    assert stats["mean"] > 0


@pytest.mark.asyncio
async def test_performance_decorator_async():
    """Test performance tracking decorator on async function."""
    @track_performance("test_async_function")
    async def test_async_func(x: int) -> int:
        await asyncio.sleep(0.01)
        return x * 2

    assert await test_async_func(5) == 10

    stats = PerformanceMonitor.get_stats("test_async_function")
    assert stats is not None
    assert stats["count"] == 1
    assert stats["mean"] > 0


def test_performance_decorator_records_failures():
    """Failures are timed and re-raised."""
    @track_performance("failing")
    def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        failing()

    assert PerformanceMonitor.get_stats("failing")["count"] == 1


def test_performance_decorator_picks_up_correlation_id():
    """A request argument contributes its correlation ID to the sample."""
    @track_performance("with_request")
    def handler(request):
        return "ok"

    request = SimpleNamespace(state=SimpleNamespace(correlation_id="abc-123"))
    handler(request=request)

    sample = performance._metrics["with_request"][0]
    assert sample["metadata"]["correlation_id"] == "abc-123"
    assert sample["metadata"]["status"] == "success"


def test_get_all_metrics():
    """Every recorded name appears in the snapshot."""
    PerformanceMonitor.record_metric("a", 1.0)
    PerformanceMonitor.record_metric("b", 2.0)

    metrics = PerformanceMonitor.get_all_metrics()
    assert set(metrics) == {"a", "b"}
    assert metrics["b"]["max"] == 2.0


def test_performance_monitor_clear():
    """Test clearing metrics."""
    PerformanceMonitor.record_metric("test", 1.0)
    assert PerformanceMonitor.get_stats("test") is not None

    PerformanceMonitor.clear_metrics()
    assert PerformanceMonitor.get_stats("test") is None
