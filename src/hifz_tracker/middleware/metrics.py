"""
Prometheus metrics for the API and the memorization engine.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from flask import Response, g, request
import logging
import time

logger = logging.getLogger(__name__)

# ============================================================================
# HTTP API METRICS
# ============================================================================

http_requests_total = Counter(
    'hifz_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'hifz_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
)

http_requests_in_flight = Gauge(
    'hifz_http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    ['method', 'endpoint']
)

# ============================================================================
# MEMORIZATION METRICS
# ============================================================================

ayahs_memorized_total = Counter(
    'hifz_ayahs_memorized_total',
    'Total ayahs marked memorized'
)

reviews_completed_total = Counter(
    'hifz_reviews_completed_total',
    'Total murajaah sessions completed',
    ['target']  # target: range|single
)

plans_created_total = Counter(
    'hifz_plans_created_total',
    'Total hafazan plans created'
)

content_requests_total = Counter(
    'hifz_content_requests_total',
    'Total requests to the Quran content provider',
    ['status']  # status: success|error
)


# Not counted: scrapes would dominate the request series
UNTRACKED_ENDPOINTS = {'metrics'}


def _endpoint_label():
    # blueprint routes are 'api.<handler>'; unrouted paths share one label
    return request.endpoint or 'unmatched'


def _start_request():
    endpoint = _endpoint_label()
    if endpoint in UNTRACKED_ENDPOINTS:
        return
    g.metrics_endpoint = endpoint
    g.metrics_started = time.perf_counter()
    http_requests_in_flight.labels(method=request.method, endpoint=endpoint).inc()


def _record_response(response):
    endpoint = g.get('metrics_endpoint')
    if endpoint is None:
        return response

    http_requests_total.labels(
        method=request.method, endpoint=endpoint, status_code=response.status_code
    ).inc()
    http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
        time.perf_counter() - g.metrics_started
    )
    return response


def _finish_request(exc=None):
    # teardown runs even when the response could not be built
    endpoint = g.pop('metrics_endpoint', None)
    if endpoint is not None:
        http_requests_in_flight.labels(method=request.method, endpoint=endpoint).dec()


def metrics_endpoint():
    """Expose metrics in Prometheus format."""
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)


def register_metrics(app):
    """Track every API request and serve the registry at /metrics."""
    app.before_request(_start_request)
    app.after_request(_record_response)
    app.teardown_request(_finish_request)
    app.add_url_rule('/metrics', 'metrics', metrics_endpoint, methods=['GET'])
