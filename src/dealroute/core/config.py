"""Dispatcher configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

from dealroute.models.enums import HandlerName

DEFAULT_FALLBACK_MESSAGE = "I encountered an issue processing your request. Please try again."
DEFAULT_CONTEXT_TRAILER = "Please provide a helpful response using this data context."


class DispatcherConfig(BaseModel):
    """Knobs for routing, tool orchestration, and workflow enforcement."""

    entry_handler: str = HandlerName.MAIN_ENTRY
    tool_handler: str = HandlerName.TOOL_HANDLER
    generation_timeout: float = Field(default=60.0, gt=0.0)
    max_tool_rounds: int = Field(default=5, ge=0)
    max_verification_attempts: int = Field(default=2, ge=1)
    max_locks: int = Field(default=1024, gt=0)
    default_term_months: int = Field(default=72, gt=0)
    default_annual_rate: float = Field(default=6.0, ge=0.0)
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE
    context_trailer: str = DEFAULT_CONTEXT_TRAILER
