"""
Performance monitoring for settlement runs and standings rebuilds
"""

import time

from flask import current_app, g, has_app_context, request

from liga.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SLOW_THRESHOLD = 1.0


def _slow_threshold():
    if has_app_context():
        return current_app.config.get("SLOW_OPERATION_THRESHOLD", DEFAULT_SLOW_THRESHOLD)
    return DEFAULT_SLOW_THRESHOLD


class PerformanceMonitor:
    """Context manager for timing a block of work"""

    def __init__(self, operation_name, log_threshold=None):
        self.operation_name = operation_name
        self.log_threshold = (
            log_threshold if log_threshold is not None else _slow_threshold()
        )
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.time() - self.start_time

        if self.duration > self.log_threshold:
            if exc_type:
                logger.error(
                    f"Operation '{self.operation_name}' failed after {self.duration:.3f}s: {exc_val}"
                )
            else:
                logger.info(
                    f"Operation '{self.operation_name}' completed in {self.duration:.3f}s"
                )

        # Request-level aggregation, only inside a Flask context
        if has_app_context():
            metrics = g.setdefault("performance_metrics", [])
            metrics.append(
                {
                    "operation": self.operation_name,
                    "duration": self.duration,
                    "success": exc_type is None,
                }
            )
        return False


def track_request_performance():
    g.request_start_time = time.time()


def log_request_performance(response):
    """Log slow requests with their timed operations"""
    start = g.get("request_start_time")
    if start is None:
        return response

    total_duration = time.time() - start
    threshold = current_app.config.get("SLOW_REQUEST_THRESHOLD", 2.0)
    if total_duration > threshold:
        logger.warning(
            f"Slow request: {request.method} {request.path} "
            f"took {total_duration:.2f}s (threshold: {threshold}s)"
        )
        for metric in g.get("performance_metrics", []):
            logger.info(
                f"  - {metric['operation']}: {metric['duration']:.3f}s "
                f"({'success' if metric['success'] else 'failed'})"
            )
    return response
