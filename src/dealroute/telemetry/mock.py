"""In-memory telemetry recorder for tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from dealroute.telemetry.base import Attr, Span, SpanKind, TelemetryProvider


@dataclass
class Metric:
    name: str
    value: float
    unit: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)


class MockTelemetryProvider(TelemetryProvider):
    """Keeps every finished span and metric so tests can query them.

    Example::

        telemetry = MockTelemetryProvider()
        dispatcher = Dispatcher(backend, telemetry=telemetry)
        await dispatcher.handle_turn("I need to get deal 207 info", "c1")
        assert telemetry.transitions("c1") == ["workflow.create"]
        assert telemetry.handlers() == ["dealerInteraction"]
    """

    def __init__(self) -> None:
        self._open: dict[str, Span] = {}
        self.spans: list[Span] = []
        self.metrics: list[Metric] = []

    @property
    def name(self) -> str:
        return "mock"

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        parent_id: str | None = None,
        attributes: dict[str, Any] | None = None,
        conversation_id: str | None = None,
    ) -> str:
        span = Span(
            kind=kind,
            name=name,
            parent_id=parent_id,
            attributes=dict(attributes or {}),
            conversation_id=conversation_id,
        )
        self._open[span.id] = span
        return span.id

    def end_span(
        self,
        span_id: str,
        *,
        status: str = "ok",
        error_message: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        span = self._open.pop(span_id, None)
        if span is None:
            return
        span.attributes.update(attributes or {})
        span.end_time = datetime.now(UTC)
        span.status = status
        span.error_message = error_message
        self.spans.append(span)

    def set_attribute(self, span_id: str, key: str, value: Any) -> None:
        if span_id in self._open:
            self._open[span_id].attributes[key] = value

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.metrics.append(Metric(name, value, unit, dict(attributes or {})))

    # -- Queries --------------------------------------------------------------

    @property
    def open_spans(self) -> list[Span]:
        return list(self._open.values())

    def get_spans(self, kind: SpanKind) -> list[Span]:
        return [s for s in self.spans if s.kind == kind]

    def transitions(self, conversation_id: str | None = None) -> list[str]:
        """Names of finished workflow transitions, oldest first."""
        return [
            s.name
            for s in self.get_spans(SpanKind.WORKFLOW_TRANSITION)
            if conversation_id is None or s.conversation_id == conversation_id
        ]

    def handlers(self) -> list[str]:
        """Handler chosen by each finished turn."""
        return [
            s.attributes[Attr.HANDLER]
            for s in self.get_spans(SpanKind.TURN)
            if Attr.HANDLER in s.attributes
        ]

    def metric_values(self, name: str) -> list[float]:
        return [m.value for m in self.metrics if m.name == name]

    def reset(self) -> None:
        self._open.clear()
        self.spans.clear()
        self.metrics.clear()
