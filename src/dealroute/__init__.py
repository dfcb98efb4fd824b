"""dealroute - Stateful async dispatcher for multi-handler car-deal conversations."""

from dealroute._version import __version__
from dealroute.core.config import DispatcherConfig
from dealroute.core.dispatcher import Dispatcher
from dealroute.core.errors import (
    DealNotFoundError,
    DealRouteError,
    NoActiveWorkflowError,
    NoPausedWorkflowError,
    NoPendingHandoffError,
    ThreadRecordNotFoundError,
    ToolError,
    ToolNotFoundError,
    ToolValidationError,
    UnknownWorkflowStepError,
    UnknownWorkflowTypeError,
    WorkflowPreconditionError,
)
from dealroute.core.locks import ConversationLockManager, InMemoryLockManager
from dealroute.models import (
    ContextMap,
    Conversation,
    Deal,
    HandlerName,
    RouteAction,
    RouteDecision,
    RouteReason,
    ThreadLookup,
    ThreadRecord,
    ToolCategory,
    ToolPriority,
    ToolRequirements,
    ToolRunResult,
    TurnResult,
    UserSession,
    UserType,
    Workflow,
    WorkflowStatus,
    WorkflowType,
    WorkflowView,
)
from dealroute.orchestration import (
    Router,
    ThreadRegistry,
    ToolOrchestrator,
    UserSessionService,
    WorkflowStateMachine,
    available_tool_categories,
    classify,
)
from dealroute.providers.ai import (
    GenerationBackend,
    GenerationBackendError,
    GenerationRequest,
    GenerationResponse,
    MockGenerationBackend,
)
from dealroute.store import (
    ConversationStore,
    DealRepository,
    InMemoryDealRepository,
    InMemoryStore,
    demo_deals,
)
from dealroute.telemetry import (
    MockTelemetryProvider,
    NoopTelemetryProvider,
    TelemetryConfig,
    TelemetryProvider,
)
from dealroute.tools import DealTools, ToolExecutor

__all__ = [
    "ContextMap",
    "Conversation",
    "ConversationLockManager",
    "ConversationStore",
    "Deal",
    "DealNotFoundError",
    "DealRepository",
    "DealRouteError",
    "DealTools",
    "Dispatcher",
    "DispatcherConfig",
    "GenerationBackend",
    "GenerationBackendError",
    "GenerationRequest",
    "GenerationResponse",
    "HandlerName",
    "InMemoryDealRepository",
    "InMemoryLockManager",
    "InMemoryStore",
    "MockGenerationBackend",
    "MockTelemetryProvider",
    "NoActiveWorkflowError",
    "NoPausedWorkflowError",
    "NoPendingHandoffError",
    "NoopTelemetryProvider",
    "RouteAction",
    "RouteDecision",
    "RouteReason",
    "Router",
    "TelemetryConfig",
    "TelemetryProvider",
    "ThreadLookup",
    "ThreadRecord",
    "ThreadRecordNotFoundError",
    "ThreadRegistry",
    "ToolCategory",
    "ToolError",
    "ToolExecutor",
    "ToolNotFoundError",
    "ToolOrchestrator",
    "ToolPriority",
    "ToolRequirements",
    "ToolRunResult",
    "ToolValidationError",
    "TurnResult",
    "UnknownWorkflowStepError",
    "UnknownWorkflowTypeError",
    "UserSession",
    "UserSessionService",
    "UserType",
    "Workflow",
    "WorkflowPreconditionError",
    "WorkflowStateMachine",
    "WorkflowStatus",
    "WorkflowType",
    "WorkflowView",
    "__version__",
    "available_tool_categories",
    "classify",
    "demo_deals",
]
