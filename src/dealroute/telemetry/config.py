"""Telemetry configuration and the default no-op provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dealroute.telemetry.base import SpanKind, TelemetryProvider


class NoopTelemetryProvider(TelemetryProvider):
    """Used when a component is built without telemetry. Every span id is empty."""

    @property
    def name(self) -> str:
        return "noop"

    def start_span(self, kind: SpanKind, name: str, **kwargs: Any) -> str:
        return ""

    def end_span(self, span_id: str, **kwargs: Any) -> None:
        pass


@dataclass
class TelemetryConfig:
    """Configuration for telemetry collection.

    Attributes:
        provider: The telemetry provider shared by the dispatcher, router,
            state machine and tool orchestrator. ``None`` disables telemetry.
    """

    provider: TelemetryProvider | None = None


def resolve_telemetry(
    telemetry: TelemetryConfig | TelemetryProvider | None,
) -> TelemetryProvider:
    """Normalise a provider-or-config argument to a provider instance."""
    if isinstance(telemetry, TelemetryProvider):
        return telemetry
    if isinstance(telemetry, TelemetryConfig) and telemetry.provider is not None:
        return telemetry.provider
    return NoopTelemetryProvider()
