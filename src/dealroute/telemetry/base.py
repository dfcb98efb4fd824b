"""Telemetry provider ABC, Span dataclass, SpanKind enum, and Attr constants."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class SpanKind(StrEnum):
    """Span classifications for telemetry."""

    TURN = "dispatcher.turn"
    ROUTE = "router.route"
    WORKFLOW_TRANSITION = "workflow.transition"
    TOOL_CALL = "tool.call"
    LLM_GENERATE = "llm.generate"
    CUSTOM = "custom"


class Attr:
    """Well-known attribute key constants for telemetry spans and metrics."""

    # Common
    PROVIDER = "provider"
    MODEL = "model"
    CONVERSATION_ID = "conversation_id"
    HANDLER = "handler"

    # Timing
    DURATION_MS = "duration_ms"

    # Routing
    ROUTE_ACTION = "route.action"
    ROUTE_REASON = "route.reason"

    # Workflow
    WORKFLOW_ID = "workflow.id"
    WORKFLOW_TYPE = "workflow.type"
    WORKFLOW_OPERATION = "workflow.operation"
    WORKFLOW_STATUS = "workflow.status"

    # Tools
    TOOL_CATEGORY = "tool.category"
    TOOL_COUNT = "tool.count"
    TOOL_ERROR_COUNT = "tool.error_count"

    # LLM
    LLM_THREAD_ID = "llm.thread_id"
    LLM_AUGMENTED = "llm.augmented"
    LLM_INPUT_TOKENS = "llm.input_tokens"
    LLM_OUTPUT_TOKENS = "llm.output_tokens"


@dataclass
class Span:
    """Represents a telemetry span."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    kind: SpanKind = SpanKind.CUSTOM
    name: str = ""
    parent_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    status: str = "ok"
    error_message: str | None = None
    conversation_id: str | None = None

    @property
    def duration_ms(self) -> float | None:
        """Duration in milliseconds, or None if not yet ended."""
        if self.end_time is None:
            return None
        delta = self.end_time - self.start_time
        return delta.total_seconds() * 1000


class TelemetryProvider(ABC):
    """Abstract base class for telemetry providers.

    Subclasses must implement span start and end; attributes and metrics
    are dropped unless overridden. ``resolve_telemetry`` falls back to
    ``NoopTelemetryProvider``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for identification."""
        ...

    @abstractmethod
    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        parent_id: str | None = None,
        attributes: dict[str, Any] | None = None,
        conversation_id: str | None = None,
    ) -> str:
        """Start a new telemetry span and return its ID."""
        ...

    @abstractmethod
    def end_span(
        self,
        span_id: str,
        *,
        status: str = "ok",
        error_message: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """End a previously started span."""
        ...

    def set_attribute(self, span_id: str, key: str, value: Any) -> None:  # noqa: B027
        """Set an attribute on an active span. Ignored unless overridden."""

    def record_metric(  # noqa: B027
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Record a metric value. Ignored unless overridden."""

    def close(self) -> None:  # noqa: B027
        """Close the provider and flush any pending data."""

    def reset(self) -> None:  # noqa: B027
        """Reset internal state (useful for testing)."""

    @contextmanager
    def span(
        self,
        kind: SpanKind,
        name: str,
        **kwargs: Any,
    ) -> Generator[str, None, None]:
        """Context manager for span lifecycle.

        Yields the span ID. Ends the span on exit, recording error status
        if an exception escapes.
        """
        span_id = self.start_span(kind, name, **kwargs)
        try:
            yield span_id
            self.end_span(span_id)
        except BaseException as exc:
            self.end_span(span_id, status="error", error_message=str(exc) or type(exc).__name__)
            raise
