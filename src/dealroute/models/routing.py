"""Routing and turn-level result models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from dealroute.models.enums import RouteAction, RouteReason, ToolCategory, ToolPriority
from dealroute.models.workflow import WorkflowView


class ToolRequirements(BaseModel):
    """Pattern classifier output: which tool categories a message implicates."""

    needed: bool = False
    tool_types: list[ToolCategory] = Field(default_factory=list)
    priority: ToolPriority = ToolPriority.LOW
    matched_patterns: list[str] = Field(default_factory=list)


class ConversationContext(BaseModel):
    """Snapshot of the conversation record the router saw."""

    current_handler: str | None = None
    active_thread_id: str | None = None
    last_handoff_at: datetime | None = None


class RouteDecision(BaseModel):
    """Which handler gets the next turn, what it should do, and why."""

    handler: str
    action: RouteAction
    reason: RouteReason
    tool_requirements: ToolRequirements = Field(default_factory=ToolRequirements)
    workflow: WorkflowView | None = None
    has_existing_thread: bool = False
    user_id: str | None = None
    conversation: ConversationContext = Field(default_factory=ConversationContext)


class ToolRunResult(BaseModel):
    """Outcome of ``ToolOrchestrator.execute_with_tools``."""

    success: bool
    response: str = ""
    handler: str = ""
    thread_id: str | None = None
    is_new_thread: bool = False
    tools_executed: list[ToolCategory] = Field(default_factory=list)
    tool_data: dict[str, str] = Field(default_factory=dict)
    tool_errors: list[str] = Field(default_factory=list)
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TurnResult(BaseModel):
    """Everything the dispatcher did for one inbound message."""

    decision: RouteDecision
    result: ToolRunResult
    workflow_id: str | None = None
    workflow_action: str | None = None

    @property
    def response(self) -> str:
        return self.result.response if self.result.success else (self.result.error or "")
