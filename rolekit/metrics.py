# rolekit/metrics.py: in-process metrics and audit trail for role management

import time
import threading
import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from contextlib import contextmanager

@dataclass
class MetricCounter:
    """A counter metric that can only increase."""
    name: str
    value: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    last_updated: float = field(default_factory=time.time)

@dataclass
class MetricGauge:
    """A gauge metric that can increase or decrease."""
    name: str
    value: float = 0.0
    labels: Dict[str, str] = field(default_factory=dict)
    last_updated: float = field(default_factory=time.time)

@dataclass
class MetricHistogram:
    """A histogram metric for tracking operation latencies."""
    name: str
    buckets: List[float] = field(default_factory=lambda: [0.1, 0.5, 1.0, 5.0, 10.0, 50.0, 100.0, 1000.0])
    counts: List[int] = field(default_factory=lambda: [0] * 8)
    sum: float = 0.0
    count: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    last_updated: float = field(default_factory=time.time)

class MetricsCollector:
    """Thread-safe metrics collector."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: Dict[str, MetricCounter] = {}
        self._gauges: Dict[str, MetricGauge] = {}
        self._histograms: Dict[str, MetricHistogram] = {}
        self._start_time = time.time()

    def _get_metric_key(self, name: str, labels: Dict[str, str] = None) -> str:
        """Generate a unique key for a metric with labels."""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def increment_counter(self, name: str, value: int = 1, labels: Dict[str, str] = None):
        with self._lock:
            key = self._get_metric_key(name, labels)
            if key not in self._counters:
                self._counters[key] = MetricCounter(name=name, labels=labels or {})
            self._counters[key].value += value
            self._counters[key].last_updated = time.time()

    def set_gauge(self, name: str, value: float, labels: Dict[str, str] = None):
        with self._lock:
            key = self._get_metric_key(name, labels)
            if key not in self._gauges:
                self._gauges[key] = MetricGauge(name=name, labels=labels or {})
            self._gauges[key].value = value
            self._gauges[key].last_updated = time.time()

    def observe_histogram(self, name: str, value: float, labels: Dict[str, str] = None):
        with self._lock:
            key = self._get_metric_key(name, labels)
            if key not in self._histograms:
                self._histograms[key] = MetricHistogram(name=name, labels=labels or {})

            histogram = self._histograms[key]
            histogram.sum += value
            histogram.count += 1
            histogram.last_updated = time.time()

            for i, bucket in enumerate(histogram.buckets):
                if value <= bucket:
                    histogram.counts[i] += 1
                    break
            else:
                histogram.counts[-1] += 1

    def get_counter(self, name: str, labels: Dict[str, str] = None) -> int:
        with self._lock:
            counter = self._counters.get(self._get_metric_key(name, labels))
            return counter.value if counter else 0

    def get_gauge(self, name: str, labels: Dict[str, str] = None) -> float:
        with self._lock:
            gauge = self._gauges.get(self._get_metric_key(name, labels))
            return gauge.value if gauge else 0.0

    def get_histogram_stats(self, name: str, labels: Dict[str, str] = None) -> Dict[str, Any]:
        with self._lock:
            histogram = self._histograms.get(self._get_metric_key(name, labels))
            if histogram is None or histogram.count == 0:
                return {"count": 0, "sum": 0.0, "avg": 0.0, "buckets": {}}
            return {
                "count": histogram.count,
                "sum": histogram.sum,
                "avg": histogram.sum / histogram.count,
                "buckets": dict(zip(histogram.buckets, histogram.counts))
            }

    def get_all_metrics(self) -> Dict[str, Any]:
        """Get all metrics in a structured format."""
        with self._lock:
            metrics = {
                "counters": {},
                "gauges": {},
                "histograms": {},
                "uptime_seconds": time.time() - self._start_time,
                "timestamp": time.time()
            }

            for counter in self._counters.values():
                metrics["counters"].setdefault(counter.name, []).append({
                    "value": counter.value,
                    "labels": counter.labels,
                    "last_updated": counter.last_updated
                })

            for gauge in self._gauges.values():
                metrics["gauges"].setdefault(gauge.name, []).append({
                    "value": gauge.value,
                    "labels": gauge.labels,
                    "last_updated": gauge.last_updated
                })

            for histogram in self._histograms.values():
                metrics["histograms"].setdefault(histogram.name, []).append({
                    "stats": self.get_histogram_stats(histogram.name, histogram.labels),
                    "labels": histogram.labels,
                    "last_updated": histogram.last_updated
                })

            return metrics

    def reset_metrics(self):
        """Reset all metrics to zero."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._start_time = time.time()

# Global metrics collector instance
_metrics = MetricsCollector()

# Audit logger for role changes
audit_logger = logging.getLogger("rbac.audit")

def increment_counter(name: str, value: int = 1, labels: Dict[str, str] = None):
    _metrics.increment_counter(name, value, labels)

def set_gauge(name: str, value: float, labels: Dict[str, str] = None):
    _metrics.set_gauge(name, value, labels)

def observe_histogram(name: str, value: float, labels: Dict[str, str] = None):
    _metrics.observe_histogram(name, value, labels)

def get_counter(name: str, labels: Dict[str, str] = None) -> int:
    return _metrics.get_counter(name, labels)

def get_gauge(name: str, labels: Dict[str, str] = None) -> float:
    return _metrics.get_gauge(name, labels)

def get_histogram_stats(name: str, labels: Dict[str, str] = None) -> Dict[str, Any]:
    return _metrics.get_histogram_stats(name, labels)

def get_all_metrics() -> Dict[str, Any]:
    return _metrics.get_all_metrics()

def reset_metrics():
    _metrics.reset_metrics()

@contextmanager
def time_operation(operation_name: str, labels: Dict[str, str] = None):
    """Context manager to time an operation and record it as a histogram."""
    start_time = time.time()
    try:
        yield
    finally:
        duration_ms = (time.time() - start_time) * 1000
        observe_histogram(f"{operation_name}_latency_ms", duration_ms, labels)


# ============================================================================
# RBAC-Specific Metrics and Auditing
# ============================================================================

def record_role_mutation(operation: str, role: str, applied: bool = True):
    """
    Record a role mutation attempt.

    Args:
        operation: Manager operation name (e.g., "merge", "override")
        role: Target role identifier
        applied: False when the operation was a no-op on an unknown role
    """
    if applied:
        increment_counter("rbac.mutations", labels={"operation": operation})
        increment_counter("rbac.mutations.by_role", labels={"role": role})
    else:
        increment_counter("rbac.noops", labels={"operation": operation})


def record_session_refresh(role: str):
    """Record a forced refresh of the active session's capabilities."""
    increment_counter("rbac.session_refreshes")
    increment_counter("rbac.session_refreshes.by_role", labels={"role": role})


def record_registry_size(role_count: int, mirrored_count: int):
    """Track registry and mirror sizes after a mutation."""
    set_gauge("rbac.registry.roles", role_count)
    set_gauge("rbac.mirror.roles", mirrored_count)


def audit_role_change(
    operation: str,
    role: str,
    capabilities: Optional[Dict[str, bool]] = None,
    metadata: Optional[Dict[str, Any]] = None
):
    """
    Emit audit log entry for a role change.

    Args:
        operation: Manager operation name
        role: Role identifier that changed
        capabilities: Resulting capability set
        metadata: Additional context
    """
    audit_entry = {
        "event": "role_change",
        "operation": operation,
        "role": role,
        "capabilities": dict(capabilities or {}),
        "timestamp": time.time(),
    }

    if metadata:
        audit_entry["metadata"] = metadata

    audit_logger.info(
        f"ROLE_CHANGE operation={operation} role={role} "
        f"capabilities={len(audit_entry['capabilities'])}",
        extra={"audit": audit_entry}
    )

    increment_counter("rbac.audit.changes")


def get_rbac_metrics() -> Dict[str, Any]:
    """
    Get all RBAC-related metrics grouped by category.

    Returns:
        Dictionary keyed by the second segment of each "rbac.*" metric name
    """
    all_metrics = _metrics.get_all_metrics()
    rbac_metrics: Dict[str, Any] = {
        "mutations": {},
        "noops": {},
        "session_refreshes": {},
        "audit": {},
    }

    for section in ("counters", "gauges"):
        for metric_name, metric_data in all_metrics.get(section, {}).items():
            if metric_name.startswith("rbac."):
                category = metric_name.split(".")[1]
                rbac_metrics.setdefault(category, {})[metric_name] = metric_data

    return rbac_metrics


def reset_rbac_metrics():
    """Reset all metrics (useful for testing)."""
    _metrics.reset_metrics()


__all__ = [
    'MetricsCollector', 'MetricCounter', 'MetricGauge', 'MetricHistogram',
    'increment_counter', 'set_gauge', 'observe_histogram', 'get_counter',
    'get_gauge', 'get_histogram_stats', 'get_all_metrics', 'reset_metrics',
    'time_operation',
    'record_role_mutation', 'record_session_refresh', 'record_registry_size',
    'audit_role_change', 'get_rbac_metrics', 'reset_rbac_metrics',
]
