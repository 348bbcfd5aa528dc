"""Logging and tracing helpers."""

from .logging import configure_logging, log_event, logger
from .tracing import async_span, tracer

__all__ = ["configure_logging", "log_event", "logger", "async_span", "tracer"]
