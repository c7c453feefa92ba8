"""Observability helpers for open-context."""

from __future__ import annotations

import logging
import sys
import time

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    # stdout carries the stdio protocol stream
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "opencontext") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class ServiceMetrics:
    """Prometheus metrics for cache, fetch and search stages."""

    cache_lookups = Counter(
        "opencontext_cache_lookups_total",
        "Cache lookups by source and outcome.",
        ["source", "outcome"],
    )
    cache_evictions = Counter(
        "opencontext_cache_evictions_total",
        "Cache entries removed because they were stale or corrupt.",
        ["reason"],
    )
    fetch_latency = Histogram(
        "opencontext_fetch_duration_seconds",
        "Time spent serving a fetch request, cache lookup included.",
        ["source"],
        buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    )
    fetch_failures = Counter(
        "opencontext_fetch_failures_total",
        "Failed upstream retrievals by source and error kind.",
        ["source", "kind"],
    )
    search_latency = Histogram(
        "opencontext_search_duration_seconds",
        "Time spent scoring the document corpus.",
        buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5),
    )
    search_results = Histogram(
        "opencontext_search_result_count",
        "Number of results returned per search.",
        buckets=(0, 1, 2, 5, 10, 20, 50, 100),
    )

    @classmethod
    def observe_lookup(cls, source: str, hit: bool) -> None:
        cls.cache_lookups.labels(source=source, outcome="hit" if hit else "miss").inc()

    @classmethod
    def observe_eviction(cls, reason: str) -> None:
        cls.cache_evictions.labels(reason=reason).inc()

    @classmethod
    def observe_fetch(cls, source: str, duration_seconds: float) -> None:
        cls.fetch_latency.labels(source=source).observe(duration_seconds)

    @classmethod
    def observe_failure(cls, source: str, kind: str) -> None:
        cls.fetch_failures.labels(source=source, kind=kind).inc()

    @classmethod
    def observe_search(cls, duration_seconds: float, result_count: int) -> None:
        cls.search_latency.observe(duration_seconds)
        cls.search_results.observe(result_count)


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback) -> None:
        self._callback = callback
        self._start = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        duration = time.perf_counter() - self._start
        self._callback(duration)


__all__ = [
    "ServiceMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
