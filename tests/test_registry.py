"""Tests for the workflow-type registry."""

from __future__ import annotations

import pytest

from dealroute.core.errors import UnknownWorkflowStepError, UnknownWorkflowTypeError
from dealroute.models.enums import HandlerName, WorkflowType
from dealroute.orchestration.registry import (
    WORKFLOWS,
    get_definition,
    successor_handler,
    workflow_type_for_handler,
)


class TestRegistryContents:
    def test_five_canonical_types(self) -> None:
        assert set(WORKFLOWS) == set(WorkflowType)

    @pytest.mark.parametrize("workflow_type", list(WorkflowType))
    def test_step_counts(self, workflow_type: WorkflowType) -> None:
        definition = WORKFLOWS[workflow_type]
        assert 4 <= len(definition.steps) <= 7
        assert len(set(definition.steps)) == len(definition.steps)
        assert definition.primary_handler in definition.handlers

    def test_dealer_verification(self) -> None:
        definition = get_definition("dealer_verification")
        assert definition.first_step == "greet_dealer"
        assert definition.steps[-1] == "confirm_handoff_ready"
        assert definition.successor == WorkflowType.CUSTOMER_TRANSACTION

    def test_customer_transaction_is_terminal(self) -> None:
        definition = get_definition(WorkflowType.CUSTOMER_TRANSACTION)
        assert definition.successor is None
        assert definition.allows(HandlerName.AFTERMARKET_OFFER)
        assert definition.allows(HandlerName.CUSTOMER_PAPERWORK)
        assert not definition.allows(HandlerName.DEALER_INTERACTION)


class TestLookups:
    def test_unknown_type(self) -> None:
        with pytest.raises(UnknownWorkflowTypeError) as exc_info:
            get_definition("car_wash")
        assert exc_info.value.workflow_type == "car_wash"

    def test_next_step(self) -> None:
        definition = get_definition(WorkflowType.AFTERMARKET_FLOW)
        assert definition.next_step("present_options") == "handle_questions"
        assert definition.next_step("update_deal") is None
        assert definition.next_step("not_a_step") is None

    def test_progress(self) -> None:
        definition = get_definition(WorkflowType.PAPERWORK_FLOW)
        assert definition.progress([]) == 0
        assert definition.progress(["identify_document_type", "present_documents"]) == 40
        assert definition.progress(list(definition.steps)) == 100

    def test_progress_ignores_foreign_steps(self) -> None:
        definition = get_definition(WorkflowType.PAPERWORK_FLOW)
        assert definition.progress(["greet_dealer"]) == 0

    def test_require_step(self) -> None:
        definition = get_definition(WorkflowType.DEALER_VERIFICATION)
        definition.require_step("verify_deal_data")
        with pytest.raises(UnknownWorkflowStepError):
            definition.require_step("deal_review")


class TestHandlerMapping:
    @pytest.mark.parametrize(
        ("handler", "expected"),
        [
            (HandlerName.DEALER_INTERACTION, WorkflowType.DEALER_VERIFICATION),
            (HandlerName.CUSTOMER_TRANSACTION, WorkflowType.CUSTOMER_TRANSACTION),
            (HandlerName.CUSTOMER_PAPERWORK, WorkflowType.PAPERWORK_FLOW),
            (HandlerName.AFTERMARKET_OFFER, WorkflowType.AFTERMARKET_FLOW),
            (HandlerName.CUSTOMER_GENERAL_INFO, WorkflowType.CUSTOMER_GENERAL_INFO),
            (HandlerName.MAIN_ENTRY, None),
            (HandlerName.TOOL_HANDLER, None),
        ],
    )
    def test_workflow_type_for_handler(
        self, handler: HandlerName, expected: WorkflowType | None
    ) -> None:
        assert workflow_type_for_handler(handler) == expected

    def test_successor_handler(self) -> None:
        assert successor_handler("dealer_verification") == HandlerName.CUSTOMER_TRANSACTION
        assert successor_handler("aftermarket_flow") == HandlerName.CUSTOMER_PAPERWORK
        assert successor_handler("customer_transaction") is None
