"""
Performance monitoring and metrics collection.
"""
import inspect
import time
import logging
import threading
from typing import Dict, Optional, Any
from functools import wraps
from collections import defaultdict

logger = logging.getLogger(__name__)

# Samples kept per metric
MAX_SAMPLES = 1000

_metrics_lock = threading.Lock()
_metrics: Dict[str, list] = defaultdict(list)


def _percentile(sorted_values: list, fraction: float) -> float:
    index = min(int(len(sorted_values) * fraction), len(sorted_values) - 1)
    return sorted_values[index]


class PerformanceMonitor:
    """Record durations per named operation and summarize them."""

    @staticmethod
    def record_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None):
        """
        Record a performance metric.

        Args:
            name: Metric name (e.g., 'analyse', 'parse_file')
            value: Metric value, usually a duration in seconds
            metadata: Optional metadata (correlation_id, status, ...)
        """
        with _metrics_lock:
            samples = _metrics[name]
            samples.append({
                'value': value,
                'timestamp': time.time(),
                'metadata': metadata or {}
            })
            if len(samples) > MAX_SAMPLES:
                del samples[:-MAX_SAMPLES]

    @staticmethod
    def _stats_unlocked(metric_name: str) -> Optional[Dict[str, float]]:
        samples = _metrics.get(metric_name)
        if not samples:
            return None

        values = sorted(m['value'] for m in samples)
        return {
            'count': len(values),
            'min': values[0],
            'max': values[-1],
            'mean': sum(values) / len(values),
            'p50': _percentile(values, 0.5),
            'p95': _percentile(values, 0.95),
            'p99': _percentile(values, 0.99),
        }

    @staticmethod
    def get_stats(metric_name: str) -> Optional[Dict[str, float]]:
        """Count, min, max, mean and percentiles for a metric, or None if unseen."""
        with _metrics_lock:
            return PerformanceMonitor._stats_unlocked(metric_name)

    @staticmethod
    def get_all_metrics() -> Dict[str, Dict[str, float]]:
        with _metrics_lock:
            return {
                name: PerformanceMonitor._stats_unlocked(name)
                for name in list(_metrics.keys())
            }

    @staticmethod
    def clear_metrics():
        """Clear all metrics (useful for testing)."""
        with _metrics_lock:
            _metrics.clear()


def _correlation_id(args, kwargs) -> Optional[str]:
    request = kwargs.get('request')
    if request is None and args and hasattr(args[0], 'state'):
        request = args[0]
    if request is not None and hasattr(request, 'state'):
        return getattr(request.state, 'correlation_id', None)
    return None


def _finish(metric_name: str, start_time: float, correlation_id: Optional[str], error: Exception = None):
    duration = time.perf_counter() - start_time
    metadata = {'correlation_id': correlation_id, 'status': 'error' if error else 'success'}
    if error is not None:
        metadata['error'] = str(error)
    PerformanceMonitor.record_metric(metric_name, duration, metadata)

    if error is None:
        logger.debug(
            f"{metric_name} completed in {duration:.3f}s",
            extra={'metric': metric_name, 'duration': duration}
        )
    else:
        logger.error(
            f"{metric_name} failed after {duration:.3f}s: {error}",
            extra={'metric': metric_name, 'duration': duration}
        )


def track_performance(metric_name: str):
    """
    Decorator to track function execution time.

    Usage:
        @track_performance("analyse")
        def analyse(rows):
            ...
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                correlation_id = _correlation_id(args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _finish(metric_name, start_time, correlation_id, e)
                    raise
                _finish(metric_name, start_time, correlation_id)
                return result

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            correlation_id = _correlation_id(args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finish(metric_name, start_time, correlation_id, e)
                raise
            _finish(metric_name, start_time, correlation_id)
            return result

        return sync_wrapper

    return decorator
