"""
In-process metrics for the profile image pipeline: outcome counters and latency.
"""

import time
from collections import Counter
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

_MAX_SAMPLES = 1000

_metrics_lock = Lock()
_metrics: Dict[str, Any] = {}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def reset_metrics():
    """Reset all metrics."""
    with _metrics_lock:
        _metrics.clear()
        _metrics.update({
            "processing_times": [],
            "success_count": 0,
            "fallback_count": 0,
            "failure_count": 0,
            "rejections": Counter(),
            "last_processed_at": None,
            "last_error_at": None,
            "last_error": None,
        })


reset_metrics()


def record_processing_time(processing_time: float):
    with _metrics_lock:
        times = _metrics["processing_times"]
        times.append(processing_time)
        if len(times) > _MAX_SAMPLES:
            del times[:-_MAX_SAMPLES]


def record_success():
    """Record an image fetched and stored locally."""
    with _metrics_lock:
        _metrics["success_count"] += 1
        _metrics["last_processed_at"] = _now()


def record_fallback(error: Optional[str] = None):
    """Record a run that fell back to linking the sanitized URL."""
    with _metrics_lock:
        _metrics["fallback_count"] += 1
        _metrics["last_processed_at"] = _now()
        if error:
            _metrics["last_error"] = error
            _metrics["last_error_at"] = _now()


def record_rejection(code: str):
    """Record a request rejected before any fetch."""
    with _metrics_lock:
        _metrics["rejections"][code] += 1


def record_failure(error: Optional[str] = None):
    """Record a run that surfaced an error to the caller."""
    with _metrics_lock:
        _metrics["failure_count"] += 1
        _metrics["last_error_at"] = _now()
        if error:
            _metrics["last_error"] = error


def _percentile(sorted_times, fraction: float) -> float:
    if not sorted_times:
        return 0.0
    return sorted_times[min(int(len(sorted_times) * fraction), len(sorted_times) - 1)]


def get_metrics() -> Dict[str, Any]:
    """
    Get a snapshot of the current metrics.

    Returns:
        Dictionary with counters, success rate and latency percentiles.
    """
    with _metrics_lock:
        processing_times = sorted(_metrics["processing_times"])
        success_count = _metrics["success_count"]
        fallback_count = _metrics["fallback_count"]
        failure_count = _metrics["failure_count"]
        rejections = dict(_metrics["rejections"])
        last_processed_at = _metrics["last_processed_at"]
        last_error_at = _metrics["last_error_at"]
        last_error = _metrics["last_error"]

    fetched = success_count + fallback_count + failure_count
    success_rate = (success_count / fetched * 100) if fetched else 0.0
    avg_latency = sum(processing_times) / len(processing_times) if processing_times else 0.0

    return {
        "total_processed": fetched + sum(rejections.values()),
        "success_count": success_count,
        "fallback_count": fallback_count,
        "failure_count": failure_count,
        "rejections": rejections,
        "success_rate": round(success_rate, 2),
        "latency": {
            "avg_seconds": round(avg_latency, 3),
            "p50_seconds": round(_percentile(processing_times, 0.5), 3),
            "p95_seconds": round(_percentile(processing_times, 0.95), 3),
            "p99_seconds": round(_percentile(processing_times, 0.99), 3),
        },
        "last_processed_at": last_processed_at,
        "last_error_at": last_error_at,
        "last_error": last_error,
    }


class ProcessingTimer:
    """Context manager for measuring processing time."""

    def __init__(self):
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        record_processing_time(self.end_time - self.start_time)
        return False
