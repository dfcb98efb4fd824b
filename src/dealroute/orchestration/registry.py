"""Static registry of workflow types.

Each entry names the ordered steps of a business process, the handlers
allowed to act within it, and the successor type used as the default
handoff target.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from dealroute.core.errors import UnknownWorkflowStepError, UnknownWorkflowTypeError
from dealroute.models.enums import HandlerName, WorkflowType


class WorkflowDefinition(BaseModel):
    """One row of the workflow registry."""

    model_config = ConfigDict(frozen=True)

    workflow_type: WorkflowType
    steps: tuple[str, ...]
    handlers: frozenset[str]
    successor: WorkflowType | None = None
    primary_handler: str

    @property
    def first_step(self) -> str:
        return self.steps[0]

    def has_step(self, step: str) -> bool:
        return step in self.steps

    def next_step(self, step: str) -> str | None:
        """Return the step after *step*, or ``None`` at the end or for unknown steps."""
        try:
            index = self.steps.index(step)
        except ValueError:
            return None
        return self.steps[index + 1] if index + 1 < len(self.steps) else None

    def progress(self, completed_steps: list[str]) -> int:
        """Whole-number percentage of registry steps that are completed."""
        done = len(set(completed_steps) & set(self.steps))
        return round(done * 100 / len(self.steps))

    def allows(self, handler: str) -> bool:
        return handler in self.handlers

    def require_step(self, step: str) -> None:
        if step not in self.steps:
            raise UnknownWorkflowStepError(self.workflow_type, step)


WORKFLOWS: dict[WorkflowType, WorkflowDefinition] = {
    WorkflowType.DEALER_VERIFICATION: WorkflowDefinition(
        workflow_type=WorkflowType.DEALER_VERIFICATION,
        steps=(
            "greet_dealer",
            "request_deal_number",
            "verify_deal_data",
            "check_completeness",
            "update_missing_info",
            "confirm_handoff_ready",
        ),
        handlers=frozenset({HandlerName.DEALER_INTERACTION}),
        successor=WorkflowType.CUSTOMER_TRANSACTION,
        primary_handler=HandlerName.DEALER_INTERACTION,
    ),
    WorkflowType.CUSTOMER_TRANSACTION: WorkflowDefinition(
        workflow_type=WorkflowType.CUSTOMER_TRANSACTION,
        steps=(
            "identity_verification",
            "sms_verification",
            "deal_review",
            "aftermarket_presentation",
            "document_preparation",
            "signature_collection",
            "transaction_completion",
        ),
        handlers=frozenset(
            {
                HandlerName.CUSTOMER_TRANSACTION,
                HandlerName.AFTERMARKET_OFFER,
                HandlerName.CUSTOMER_PAPERWORK,
            }
        ),
        primary_handler=HandlerName.CUSTOMER_TRANSACTION,
    ),
    WorkflowType.CUSTOMER_GENERAL_INFO: WorkflowDefinition(
        workflow_type=WorkflowType.CUSTOMER_GENERAL_INFO,
        steps=(
            "assess_needs",
            "gather_requirements",
            "provide_estimates",
            "educate_process",
            "guide_next_steps",
        ),
        handlers=frozenset({HandlerName.CUSTOMER_GENERAL_INFO}),
        successor=WorkflowType.DEALER_VERIFICATION,
        primary_handler=HandlerName.CUSTOMER_GENERAL_INFO,
    ),
    WorkflowType.PAPERWORK_FLOW: WorkflowDefinition(
        workflow_type=WorkflowType.PAPERWORK_FLOW,
        steps=(
            "identify_document_type",
            "present_documents",
            "explain_terms",
            "facilitate_signing",
            "confirm_completion",
        ),
        handlers=frozenset({HandlerName.CUSTOMER_PAPERWORK}),
        successor=WorkflowType.CUSTOMER_TRANSACTION,
        primary_handler=HandlerName.CUSTOMER_PAPERWORK,
    ),
    WorkflowType.AFTERMARKET_FLOW: WorkflowDefinition(
        workflow_type=WorkflowType.AFTERMARKET_FLOW,
        steps=(
            "present_options",
            "handle_questions",
            "address_objections",
            "confirm_selection",
            "update_deal",
        ),
        handlers=frozenset({HandlerName.AFTERMARKET_OFFER}),
        successor=WorkflowType.PAPERWORK_FLOW,
        primary_handler=HandlerName.AFTERMARKET_OFFER,
    ),
}

_HANDLER_WORKFLOWS: dict[str, WorkflowType] = {
    HandlerName.DEALER_INTERACTION: WorkflowType.DEALER_VERIFICATION,
    HandlerName.CUSTOMER_TRANSACTION: WorkflowType.CUSTOMER_TRANSACTION,
    HandlerName.CUSTOMER_PAPERWORK: WorkflowType.PAPERWORK_FLOW,
    HandlerName.AFTERMARKET_OFFER: WorkflowType.AFTERMARKET_FLOW,
    HandlerName.CUSTOMER_GENERAL_INFO: WorkflowType.CUSTOMER_GENERAL_INFO,
}


def get_definition(workflow_type: str) -> WorkflowDefinition:
    """Look up a workflow type.

    Raises:
        UnknownWorkflowTypeError: If *workflow_type* is not registered.
    """
    try:
        return WORKFLOWS[WorkflowType(workflow_type)]
    except ValueError:
        raise UnknownWorkflowTypeError(workflow_type) from None


def workflow_type_for_handler(handler: str) -> WorkflowType | None:
    """Default workflow a handler starts, or ``None`` for roles that start none."""
    return _HANDLER_WORKFLOWS.get(handler)


def successor_handler(workflow_type: str) -> str | None:
    """Handler that receives a default handoff out of *workflow_type*."""
    successor = get_definition(workflow_type).successor
    if successor is None:
        return None
    return WORKFLOWS[successor].primary_handler
