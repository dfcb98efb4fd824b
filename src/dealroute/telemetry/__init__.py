"""Telemetry provider system for dealroute."""

from dealroute.telemetry.base import Attr, Span, SpanKind, TelemetryProvider
from dealroute.telemetry.config import NoopTelemetryProvider, TelemetryConfig, resolve_telemetry
from dealroute.telemetry.mock import Metric, MockTelemetryProvider

__all__ = [
    "Attr",
    "Metric",
    "MockTelemetryProvider",
    "NoopTelemetryProvider",
    "Span",
    "SpanKind",
    "TelemetryConfig",
    "TelemetryProvider",
    "resolve_telemetry",
]
