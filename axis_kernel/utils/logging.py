from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from typing import Any, MutableMapping

import aiofiles  # type: ignore
import aiofiles.os  # type: ignore
import aiosqlite  # type: ignore
import structlog
from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.resources import Resource

logger = structlog.get_logger()

# Optional OpenTelemetry event counter if an exporter URL is provided
OTEL_EVENT_COUNTER = None
otel_url = os.getenv("AXIS_OTEL_EXPORTER_URL")
if otel_url:
    resource = Resource.create({"service.name": "axis-kernel"})
    reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=otel_url, timeout=5))
    provider = MeterProvider(metric_readers=[reader], resource=resource)
    metrics.set_meter_provider(provider)
    meter = metrics.get_meter(__name__)
    OTEL_EVENT_COUNTER = meter.create_counter("axis_log_events")


def configure_logging(level: str = "INFO") -> None:
    """Render structlog events as timestamped JSON at ``level``."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(key="timestamp", fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        cache_logger_on_first_use=False,
    )


async def _rotate(path: str, max_bytes: int) -> None:
    if await aiofiles.os.path.exists(path):
        stat = await aiofiles.os.stat(path)
        if stat.st_size > max_bytes:
            ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
            await aiofiles.os.rename(path, f"{path}.{ts}")


async def log_event(event: str, data: dict[str, Any]) -> None:
    """Write an event to the kernel log as JSON."""
    record: MutableMapping[str, Any] = {"event": event, **data}
    record = structlog.processors.TimeStamper(key="timestamp", fmt="iso", utc=True)(logger, "info", record)
    json_line = structlog.processors.JSONRenderer(default=str)(logger, "info", record)

    if OTEL_EVENT_COUNTER is not None:
        OTEL_EVENT_COUNTER.add(1, {"event": event})

    db_path = os.getenv("AXIS_LOG_DB_PATH")
    if db_path:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("CREATE TABLE IF NOT EXISTS logs (json TEXT)")
            await db.execute("INSERT INTO logs (json) VALUES (?)", (json_line,))
            await db.commit()
        return

    log_dir = os.getenv("AXIS_LOG_PATH", "logs")
    os.makedirs(log_dir, exist_ok=True)
    max_bytes = int(os.getenv("AXIS_LOG_MAX_BYTES", "5000000"))
    path = os.path.join(log_dir, "kernel.log")
    await _rotate(path, max_bytes)
    async with aiofiles.open(path, "a", encoding="utf-8") as f:
        await f.write(str(json_line) + "\n")


__all__ = ["configure_logging", "log_event", "logger"]
