"""
Prometheus metrics for the Alba conciergerie API.

Exposes /metrics with request counters, latency histograms, and the
AI pipeline's decision and failure metrics.
"""

import logging
import time

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    "concierge_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "concierge_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
ACTIVE_REQUESTS = Gauge(
    "concierge_http_active_requests",
    "Currently active HTTP requests",
)

# Pipeline metrics
AI_ACTIONS = Counter(
    "concierge_ai_actions_total",
    "AI reply decisions",
    ["action"],
)
AI_CONFIDENCE = Histogram(
    "concierge_ai_confidence",
    "Calibrated confidence distribution",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.85, 0.9, 1.0],
)
LLM_LATENCY = Histogram(
    "concierge_llm_duration_seconds",
    "LLM generation latency",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)
AI_FAILURES = Counter(
    "concierge_ai_failures_total",
    "Aborted generation turns",
    ["kind"],  # generation | parse | persistence
)
EFFECT_FAILURES = Counter(
    "concierge_effect_failures_total",
    "Failed post-decision side effects",
    ["effect"],  # message_create | message_link | delivery | status_update | notification
)


def record_action(action: str, confidence: float):
    """Record a decided action and its confidence."""
    AI_ACTIONS.labels(action=action).inc()
    AI_CONFIDENCE.observe(confidence)


def record_llm_latency(seconds: float):
    """Record LLM generation latency."""
    LLM_LATENCY.observe(seconds)


def record_failure(kind: str):
    """Record an aborted turn."""
    AI_FAILURES.labels(kind=kind).inc()


def record_effect_failure(effect: str, count: int = 1):
    """Record a failed side effect."""
    if count > 0:
        EFFECT_FAILURES.labels(effect=effect).inc(count)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware that records HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        ACTIVE_REQUESTS.inc()
        start = time.time()

        try:
            response = await call_next(request)
        except Exception:
            ACTIVE_REQUESTS.dec()
            raise

        duration = time.time() - start
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)
        ACTIVE_REQUESTS.dec()

        return response


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
