"""Prometheus metrics for monitoring the Genealogy Buddy backend."""

from collections.abc import Iterator
from contextlib import contextmanager
from time import time

from prometheus_client import Counter, Gauge, Histogram

# Request metrics
request_latency_seconds = Histogram(
    "genealogy_buddy_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    ["endpoint", "method"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

request_total = Counter(
    "genealogy_buddy_request_total",
    "Total number of HTTP requests",
    ["endpoint", "method", "status"],
)

active_requests = Gauge(
    "genealogy_buddy_active_requests",
    "Number of active HTTP requests",
)

# Entitlement metrics
access_decisions_total = Counter(
    "genealogy_buddy_access_decisions_total",
    "Access decisions by tier, feature and reason",
    ["tier", "feature", "reason"],
)

usage_increments_total = Counter(
    "genealogy_buddy_usage_increments_total",
    "Successful usage counter increments",
    ["feature"],
)

usage_record_failures_total = Counter(
    "genealogy_buddy_usage_record_failures_total",
    "Usage increments that failed after a successful tool invocation",
    ["feature"],
)

# AI provider metrics
ai_call_latency_seconds = Histogram(
    "genealogy_buddy_ai_call_latency_seconds",
    "Latency of AI provider calls in seconds",
    ["kind"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 45.0, 60.0, 120.0),
)

ai_call_failures_total = Counter(
    "genealogy_buddy_ai_call_failures_total",
    "Failed AI provider calls",
    ["kind", "reason"],
)


def track_access_decision(tier: str, feature: str, reason: str) -> None:
    """Count an access decision."""
    access_decisions_total.labels(tier=tier, feature=feature, reason=reason).inc()


def track_usage_increment(feature: str) -> None:
    """Count a recorded usage increment."""
    usage_increments_total.labels(feature=feature).inc()


def track_usage_record_failure(feature: str) -> None:
    """Count an increment that could not be recorded."""
    usage_record_failures_total.labels(feature=feature).inc()


@contextmanager
def track_ai_call(kind: str) -> Iterator[None]:
    """Context manager to time an AI provider call.

    Usage:
        with track_ai_call("document"):
            result = await client.messages.create(...)
    """
    start = time()
    try:
        yield
    finally:
        ai_call_latency_seconds.labels(kind=kind).observe(time() - start)


def track_ai_failure(kind: str, reason: str) -> None:
    """Count a failed AI provider call."""
    ai_call_failures_total.labels(kind=kind, reason=reason).inc()
