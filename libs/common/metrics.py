"""Metrics collection for classifier serving.

Provides a thin convenience wrapper around ``prometheus_client`` so the
service can consistently record HTTP, inference, and failure metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per service (can be injected if needed)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Centralized metrics collection for the classifier service.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.inference_requests = Counter(
            'ml_inference_requests_total',
            'Total ML inference requests',
            ['model_name'],
            registry=self.registry
        )

        self.inference_duration = Histogram(
            'ml_inference_duration_seconds',
            'ML inference duration including scaling and lock wait',
            ['model_name'],
            registry=self.registry
        )

        self.inference_lock_wait = Histogram(
            'ml_inference_lock_wait_seconds',
            'Time spent waiting for the exclusive inference lock',
            registry=self.registry
        )

        self.prediction_errors = Counter(
            'ml_prediction_errors_total',
            'Failed predictions partitioned by error kind',
            ['kind'],
            registry=self.registry
        )

        self.predicted_classes = Counter(
            'ml_predicted_class_total',
            'Predictions partitioned by predicted class name',
            ['class_name'],
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_inference(self, model_name: str, duration: float) -> None:
        """Record a completed inference."""
        self.inference_requests.labels(model_name=model_name).inc()
        self.inference_duration.labels(model_name=model_name).observe(duration)

    def record_lock_wait(self, duration: float) -> None:
        """Record how long a caller waited for the inference lock."""
        self.inference_lock_wait.observe(duration)

    def record_prediction_error(self, kind: str) -> None:
        """Record a failed prediction by error kind."""
        self.prediction_errors.labels(kind=kind).inc()

    def record_predicted_class(self, class_name: str) -> None:
        """Record the class returned by a successful prediction."""
        self.predicted_classes.labels(class_name=class_name).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create metrics collector for a service.

    Returns a process-wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
