"""Logging and Prometheus metrics."""

from .observability import ServiceMetrics, TimedSection, configure_logging, get_logger

__all__ = ["ServiceMetrics", "TimedSection", "configure_logging", "get_logger"]
