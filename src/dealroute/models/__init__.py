"""Pydantic models and enums for dealroute."""

from dealroute.models.context import ContextMap
from dealroute.models.conversation import Conversation, ThreadLookup, ThreadRecord, UserSession
from dealroute.models.deal import Deal
from dealroute.models.enums import (
    HandlerName,
    RouteAction,
    RouteReason,
    ToolCategory,
    ToolPriority,
    UserType,
    WorkflowStatus,
    WorkflowType,
)
from dealroute.models.routing import (
    ConversationContext,
    RouteDecision,
    ToolRequirements,
    ToolRunResult,
    TurnResult,
)
from dealroute.models.workflow import (
    ErrorOutcome,
    ErrorState,
    VerificationOutcome,
    Workflow,
    WorkflowView,
)

__all__ = [
    "ContextMap",
    "Conversation",
    "ConversationContext",
    "Deal",
    "ErrorOutcome",
    "ErrorState",
    "HandlerName",
    "RouteAction",
    "RouteDecision",
    "RouteReason",
    "ThreadLookup",
    "ThreadRecord",
    "ToolCategory",
    "ToolPriority",
    "ToolRequirements",
    "ToolRunResult",
    "TurnResult",
    "UserSession",
    "UserType",
    "VerificationOutcome",
    "Workflow",
    "WorkflowStatus",
    "WorkflowType",
    "WorkflowView",
]
