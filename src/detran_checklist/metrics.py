"""Prometheus metrics helpers for the checklist server."""

from __future__ import annotations

import threading

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_LOCK = threading.Lock()
_REGISTRY: CollectorRegistry | None = None

# Collectors are created lazily so tests can reset the registry
_TOOL_CALL_COUNTER: Counter
_TOOL_LATENCY_SECONDS: Histogram
_BACKEND_REQUEST_COUNTER: Counter
_BACKEND_LATENCY_SECONDS: Histogram
_HTTP_REQUEST_COUNTER: Counter
_HTTP_REQUEST_LATENCY_SECONDS: Histogram


def _initialise_registry() -> None:
    global _REGISTRY
    global _TOOL_CALL_COUNTER, _TOOL_LATENCY_SECONDS
    global _BACKEND_REQUEST_COUNTER, _BACKEND_LATENCY_SECONDS
    global _HTTP_REQUEST_COUNTER, _HTTP_REQUEST_LATENCY_SECONDS

    registry = CollectorRegistry()

    _TOOL_CALL_COUNTER = Counter(
        "checklist_tool_calls_total",
        "Number of tool invocations grouped by tool and status.",
        ["tool", "status"],
        registry=registry,
    )
    _TOOL_LATENCY_SECONDS = Histogram(
        "checklist_tool_latency_seconds",
        "Execution time of tool invocations.",
        ["tool"],
        registry=registry,
    )
    _BACKEND_REQUEST_COUNTER = Counter(
        "checklist_backend_requests_total",
        "Number of catalog backend requests.",
        ["backend", "operation", "outcome", "cache"],
        registry=registry,
    )
    _BACKEND_LATENCY_SECONDS = Histogram(
        "checklist_backend_request_seconds",
        "Latency of catalog backend requests (cache hits are recorded as zero).",
        ["backend", "cache"],
        registry=registry,
    )
    _HTTP_REQUEST_COUNTER = Counter(
        "checklist_http_requests_total",
        "HTTP requests handled by the streamable HTTP server.",
        ["method", "path", "status"],
        registry=registry,
    )
    _HTTP_REQUEST_LATENCY_SECONDS = Histogram(
        "checklist_http_request_seconds",
        "HTTP handler latency for the streamable HTTP server.",
        ["method", "path"],
        registry=registry,
    )

    _REGISTRY = registry


def _ensure_registry() -> None:
    if _REGISTRY is None:
        with _LOCK:
            if _REGISTRY is None:
                _initialise_registry()


def record_tool_invocation(tool: str, status: str, duration_seconds: float) -> None:
    """Record a tool invocation."""

    _ensure_registry()
    _TOOL_CALL_COUNTER.labels(tool=tool, status=status).inc()
    _TOOL_LATENCY_SECONDS.labels(tool=tool).observe(duration_seconds)


def record_backend_request(
    backend: str,
    operation: str,
    *,
    cache_hit: bool,
    outcome: str,
    duration_seconds: float,
) -> None:
    """Record a catalog backend request (remote or cache)."""

    _ensure_registry()
    cache_label = "hit" if cache_hit else "miss"
    _BACKEND_REQUEST_COUNTER.labels(
        backend=backend, operation=operation, outcome=outcome, cache=cache_label
    ).inc()
    _BACKEND_LATENCY_SECONDS.labels(backend=backend, cache=cache_label).observe(
        duration_seconds
    )


def record_http_request(
    method: str,
    path: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record an HTTP request handled by the streamable HTTP server."""

    _ensure_registry()
    _HTTP_REQUEST_COUNTER.labels(
        method=method,
        path=path,
        status=str(status_code),
    ).inc()
    _HTTP_REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(duration_seconds)


def metrics_payload() -> tuple[bytes, str]:
    """Return the Prometheus metrics payload and content type."""

    _ensure_registry()
    return generate_latest(_REGISTRY or CollectorRegistry()), CONTENT_TYPE_LATEST


def reset_metrics_for_tests() -> None:  # pragma: no cover - test utility
    """Reset the registry so tests can run with a clean state."""

    with _LOCK:
        _initialise_registry()
