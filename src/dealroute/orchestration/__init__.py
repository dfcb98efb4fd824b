"""Routing, workflow state, thread registry, and tool orchestration."""

from dealroute.orchestration.classifier import (
    RULES,
    ClassifierRule,
    available_tool_categories,
    classify,
    priority_for,
)
from dealroute.orchestration.registry import (
    WORKFLOWS,
    WorkflowDefinition,
    get_definition,
    successor_handler,
    workflow_type_for_handler,
)
from dealroute.orchestration.router import COLD_START_RULES, Router, RoutingRule, cold_start
from dealroute.orchestration.state import RETRY_BUDGET, WorkflowStateMachine, describe
from dealroute.orchestration.threads import ThreadRegistry, UserSessionService
from dealroute.orchestration.tool_orchestrator import (
    CategoryOutcome,
    ToolOrchestrator,
    build_augmented_prompt,
    extract_deal_number,
)

__all__ = [
    "COLD_START_RULES",
    "RETRY_BUDGET",
    "RULES",
    "WORKFLOWS",
    "CategoryOutcome",
    "ClassifierRule",
    "Router",
    "RoutingRule",
    "ThreadRegistry",
    "ToolOrchestrator",
    "UserSessionService",
    "WorkflowDefinition",
    "WorkflowStateMachine",
    "available_tool_categories",
    "build_augmented_prompt",
    "classify",
    "cold_start",
    "describe",
    "extract_deal_number",
    "get_definition",
    "priority_for",
    "successor_handler",
    "workflow_type_for_handler",
]
