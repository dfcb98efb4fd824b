"""Exception hierarchy for dealroute."""

from __future__ import annotations


class DealRouteError(Exception):
    """Base exception for all dealroute errors."""


class UnknownWorkflowTypeError(DealRouteError):
    """Workflow type is not in the registry.

    Fatal at creation time: retrying with the same type will fail again.
    """

    def __init__(self, workflow_type: str) -> None:
        super().__init__(f"Unknown workflow type: {workflow_type}")
        self.workflow_type = workflow_type


class UnknownWorkflowStepError(DealRouteError):
    """Step name is not part of the workflow type's step list."""

    def __init__(self, workflow_type: str, step: str) -> None:
        super().__init__(f"Step {step!r} is not defined for workflow type {workflow_type!r}")
        self.workflow_type = workflow_type
        self.step = step


class WorkflowPreconditionError(DealRouteError):
    """The conversation's workflow is not in the state the operation requires.

    Callers should re-read state via ``WorkflowStateMachine.get_state``
    before retrying.
    """

    expected = ""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"No {self.expected} workflow found for conversation {conversation_id}")
        self.conversation_id = conversation_id


class NoActiveWorkflowError(WorkflowPreconditionError):
    """No workflow with status ``active`` exists for the conversation."""

    expected = "active"


class NoPendingHandoffError(WorkflowPreconditionError):
    """No workflow with status ``handoff_pending`` exists for the conversation."""

    expected = "handoff_pending"


class NoPausedWorkflowError(WorkflowPreconditionError):
    """No workflow with status ``paused`` exists for the conversation."""

    expected = "paused"


class ThreadRecordNotFoundError(DealRouteError):
    """Thread record does not exist."""


class ToolError(DealRouteError):
    """Base class for narrow tool operation failures."""


class ToolNotFoundError(ToolError):
    """A record referenced by a tool call does not exist."""


class ToolValidationError(ToolError):
    """A tool call was given missing or invalid arguments."""


class DealNotFoundError(ToolNotFoundError):
    """Deal does not exist in the repository."""

    def __init__(self, deal_number: str) -> None:
        super().__init__(f"Deal not found: {deal_number}")
        self.deal_number = deal_number
