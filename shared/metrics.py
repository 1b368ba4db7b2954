"""
Shared metrics configuration for the Mehm API Gateway.
"""

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info

# Label used for requests that matched no registered route
UNMATCHED_ROUTE = "unmatched"


class MetricsCollector:
    """Prometheus collectors for one service.

    Each collector owns its registry so several service instances (tests,
    workers) can coexist in one process. Requests are labelled by route
    name, never by raw path.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": self.service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Inbound HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "Inbound HTTP request duration in seconds, upstream time included",
            ["method", "route"],
            registry=self.registry,
        )
        self._metrics["upstream_requests_total"] = Counter(
            "upstream_requests_total",
            "Requests forwarded to upstream services",
            ["backend", "status_code"],
            registry=self.registry,
        )
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Requests answered by the gateway with an error envelope",
            ["code", "route"],
            registry=self.registry,
        )
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Health check requests",
            ["status"],
            registry=self.registry,
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, route: Optional[str], status_code: int, duration: float):
        route = route or UNMATCHED_ROUTE
        self._metrics["http_requests_total"].labels(
            method=method, route=route, status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(method=method, route=route).observe(duration)

    def record_upstream_request(self, backend: str, status_code: str):
        """Record a forwarded call; unreachable backends are recorded as "error"."""
        self._metrics["upstream_requests_total"].labels(backend=backend, status_code=status_code).inc()

    def record_error(self, code: str, route: Optional[str] = None):
        self._metrics["errors_total"].labels(code=code, route=route or UNMATCHED_ROUTE).inc()

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
