"""
Shared metrics configuration for the roaming settings adapter.
"""

import threading
from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up metrics for the Graph client and the settings store."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # Graph API
        self._metrics["graph_requests_total"] = Counter(
            "graph_requests_total",
            "Total Microsoft Graph requests",
            ["method", "status_code"],
            registry=self.registry
        )

        self._metrics["graph_request_duration_seconds"] = Histogram(
            "graph_request_duration_seconds",
            "Microsoft Graph request duration in seconds",
            ["method"],
            registry=self.registry
        )

        # Settings store
        self._metrics["roaming_sync_total"] = Counter(
            "roaming_sync_total",
            "Total settings synchronizations",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["roaming_remote_writes_total"] = Counter(
            "roaming_remote_writes_total",
            "Total background remote writes",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["roaming_cache_keys"] = Gauge(
            "roaming_cache_keys",
            "Number of keys in the local settings cache",
            ["extension_id"],
            registry=self.registry
        )

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            with self._lock:
                self._metrics[metric_name].labels(**labels).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)

