"""Prometheus metrics for the coverage endpoints.

Handlers and the peer loops record lightweight telemetry here so that a
failing aggregation can be told apart from a slow one on a dashboard. The
standalone app exposes them on ``/metrics``; an application that mounts the
router can expose the default registry however it already does.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Gauge, Histogram


COVERAGE_REQUESTS: Final[Counter] = Counter(
    "podcoverage_requests_total",
    "Total coverage endpoint requests, labeled by endpoint and outcome.",
    labelnames=("endpoint", "outcome"),
)

PEER_RESPONSES: Final[Counter] = Counter(
    "podcoverage_peer_responses_total",
    (
        "Responses received while polling the entry URL, labeled by operation "
        "(collect, reset) and result (new, duplicate, error)."
    ),
    labelnames=("operation", "result"),
)

PEER_OPERATION_LATENCY: Final[Histogram] = Histogram(
    "podcoverage_peer_operation_seconds",
    "Wall-clock time of one collection or reset broadcast, labeled by operation.",
    labelnames=("operation",),
    # Upper buckets straddle the default 15s overall budget.
    buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0),
)

TOTAL_COVERAGE_PERCENT: Final[Gauge] = Gauge(
    "podcoverage_total_coverage_percent",
    "Most recently aggregated average coverage across all replicas.",
)


def observe_request(endpoint: str, outcome: str) -> None:
    COVERAGE_REQUESTS.labels(endpoint=endpoint, outcome=outcome).inc()


def observe_peer_response(operation: str, result: str) -> None:
    PEER_RESPONSES.labels(operation=operation, result=result).inc()
