"""Tests for the workflow state machine."""

from __future__ import annotations

import asyncio

import pytest

from dealroute.core.errors import (
    NoActiveWorkflowError,
    NoPausedWorkflowError,
    NoPendingHandoffError,
    UnknownWorkflowStepError,
    UnknownWorkflowTypeError,
)
from dealroute.models.enums import HandlerName, WorkflowStatus, WorkflowType
from dealroute.orchestration.state import WorkflowStateMachine
from dealroute.store.memory import InMemoryStore
from dealroute.telemetry.base import SpanKind
from dealroute.telemetry.mock import MockTelemetryProvider

DEALER = HandlerName.DEALER_INTERACTION
CUSTOMER = HandlerName.CUSTOMER_TRANSACTION


async def _open_workflows(store: InMemoryStore, conversation_id: str) -> list:
    return [w for w in await store.list_workflows(conversation_id) if w.is_open]


# -- Create ------------------------------------------------------------------


class TestCreate:
    async def test_create_starts_at_first_step(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        workflow_id = await state_machine.create("c1", "dealer_verification", DEALER)
        workflow = await store.get_workflow(workflow_id)
        assert workflow is not None
        assert workflow.current_step == "greet_dealer"
        assert workflow.status == WorkflowStatus.ACTIVE
        assert workflow.completed_steps == []
        assert workflow.current_handler == DEALER

    async def test_create_again_merges(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        first = await state_machine.create(
            "c1", "dealer_verification", DEALER, initial_data={"deal_number": "207", "a": 1}
        )
        second = await state_machine.create(
            "c1", "dealer_verification", DEALER, initial_data={"a": 2, "b": 3}
        )
        assert first == second
        workflows = await store.list_workflows("c1")
        assert len(workflows) == 1
        assert workflows[0].workflow_data.values == {"deal_number": "207", "a": 2, "b": 3}

    async def test_create_merge_switches_type_and_resets_step(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        workflow_id = await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.create("c1", "customer_transaction", CUSTOMER)
        workflow = await store.get_workflow(workflow_id)
        assert workflow is not None
        assert workflow.workflow_type == WorkflowType.CUSTOMER_TRANSACTION
        assert workflow.current_handler == CUSTOMER
        assert workflow.current_step == "identity_verification"

    async def test_unknown_type(self, state_machine: WorkflowStateMachine) -> None:
        with pytest.raises(UnknownWorkflowTypeError):
            await state_machine.create("c1", "bogus", DEALER)

    async def test_concurrent_creates_yield_one_workflow(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        ids = await asyncio.gather(
            *(
                state_machine.create("c1", "dealer_verification", DEALER, initial_data={"n": n})
                for n in range(5)
            )
        )
        assert len(set(ids)) == 1
        assert len(await store.list_workflows("c1")) == 1

    async def test_conversations_are_independent(
        self, state_machine: WorkflowStateMachine
    ) -> None:
        a = await state_machine.create("c1", "dealer_verification", DEALER)
        b = await state_machine.create("c2", "dealer_verification", DEALER)
        assert a != b


# -- Advance -----------------------------------------------------------------


class TestAdvanceStep:
    async def test_requires_active_workflow(self, state_machine: WorkflowStateMachine) -> None:
        with pytest.raises(NoActiveWorkflowError) as exc_info:
            await state_machine.advance_step("c1", "request_deal_number")
        assert exc_info.value.conversation_id == "c1"

    async def test_rejects_unknown_step(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        with pytest.raises(UnknownWorkflowStepError):
            await state_machine.advance_step("c1", "deal_review")

    async def test_mark_complete_records_pre_step(
        self, state_machine: WorkflowStateMachine
    ) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        workflow = await state_machine.advance_step(
            "c1", "request_deal_number", mark_complete=True
        )
        assert workflow.current_step == "request_deal_number"
        assert workflow.completed_steps == ["greet_dealer"]

    async def test_mark_complete_is_deduplicated(
        self, state_machine: WorkflowStateMachine
    ) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.advance_step("c1", "greet_dealer", mark_complete=True)
        workflow = await state_machine.advance_step("c1", "greet_dealer", mark_complete=True)
        assert workflow.completed_steps == ["greet_dealer"]

    async def test_without_mark_complete(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        workflow = await state_machine.advance_step("c1", "request_deal_number")
        assert workflow.completed_steps == []

    async def test_shallow_merge(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create(
            "c1", "dealer_verification", DEALER, initial_data={"deal": {"n": 1}, "keep": True}
        )
        workflow = await state_machine.advance_step(
            "c1",
            "verify_deal_data",
            step_data={"checked": ["name"]},
            workflow_data={"deal": {"m": 2}},
        )
        assert workflow.workflow_data.values == {"deal": {"m": 2}, "keep": True}
        assert workflow.step_data.values == {"checked": ["name"]}
        assert workflow.workflow_data.version == 1
        assert workflow.step_data.version == 1

    async def test_empty_merge_keeps_version(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        workflow = await state_machine.advance_step("c1", "request_deal_number", step_data={})
        assert workflow.step_data.version == 0


# -- Handoff -----------------------------------------------------------------


class TestHandoff:
    async def test_handoff_same_type(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        workflow_id = await state_machine.create("c1", "customer_transaction", CUSTOMER)
        pending = await state_machine.initiate_handoff(
            "c1", HandlerName.AFTERMARKET_OFFER, "verified", {"verified": True}
        )
        assert pending.status == WorkflowStatus.HANDOFF_PENDING
        assert pending.next_handler == HandlerName.AFTERMARKET_OFFER
        assert pending.handoff_reason == "verified"

        result_id = await state_machine.complete_handoff("c1", HandlerName.AFTERMARKET_OFFER)
        assert result_id == workflow_id
        workflow = await store.get_workflow(workflow_id)
        assert workflow is not None
        assert workflow.status == WorkflowStatus.ACTIVE
        assert workflow.current_handler == HandlerName.AFTERMARKET_OFFER
        assert workflow.next_handler is None
        assert workflow.handoff_reason is None
        assert workflow.workflow_data.get("verified") is True

    async def test_handoff_scenario_dealer_to_customer(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        workflow_id = await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.initiate_handoff("c1", CUSTOMER, "verified")
        result_id = await state_machine.complete_handoff("c1", CUSTOMER)

        assert result_id == workflow_id
        workflow = await store.get_workflow(workflow_id)
        assert workflow is not None
        assert workflow.status == WorkflowStatus.ACTIVE
        assert workflow.current_handler == CUSTOMER
        assert workflow.next_handler is None

    async def test_handoff_to_new_type_carries_data(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        old_id = await state_machine.create(
            "c1", "dealer_verification", DEALER, initial_data={"deal_number": "207"}
        )
        await state_machine.advance_step("c1", "verify_deal_data", workflow_data={"ok": True})
        await state_machine.initiate_handoff("c1", CUSTOMER, "deal verified")
        new_id = await state_machine.complete_handoff(
            "c1", CUSTOMER, WorkflowType.CUSTOMER_TRANSACTION
        )

        assert new_id != old_id
        old = await store.get_workflow(old_id)
        new = await store.get_workflow(new_id)
        assert old is not None and new is not None
        assert old.status == WorkflowStatus.COMPLETED
        assert old.next_handler is None
        assert new.status == WorkflowStatus.ACTIVE
        assert new.workflow_type == WorkflowType.CUSTOMER_TRANSACTION
        assert new.current_step == "identity_verification"
        assert new.current_handler == CUSTOMER
        assert new.workflow_data == old.workflow_data
        assert len(await _open_workflows(store, "c1")) == 1

    async def test_initiate_requires_active(self, state_machine: WorkflowStateMachine) -> None:
        with pytest.raises(NoActiveWorkflowError):
            await state_machine.initiate_handoff("c1", CUSTOMER, "x")

    async def test_complete_requires_pending(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        with pytest.raises(NoPendingHandoffError):
            await state_machine.complete_handoff("c1", CUSTOMER)

    async def test_pending_blocks_advance(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.initiate_handoff("c1", CUSTOMER, "x")
        with pytest.raises(NoActiveWorkflowError):
            await state_machine.advance_step("c1", "request_deal_number")

    async def test_unknown_new_type_leaves_handoff_pending(
        self, state_machine: WorkflowStateMachine
    ) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.initiate_handoff("c1", CUSTOMER, "x")
        with pytest.raises(UnknownWorkflowTypeError):
            await state_machine.complete_handoff("c1", CUSTOMER, "nope")
        view = await state_machine.get_state("c1")
        assert view is not None
        assert view.status == WorkflowStatus.HANDOFF_PENDING


# -- Errors ------------------------------------------------------------------


class TestRecordError:
    async def test_retry_three_times_then_fail(
        self, state_machine: WorkflowStateMachine
    ) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        outcomes = [
            await state_machine.record_error("c1", "boom", "greet_dealer", should_retry=True)
            for _ in range(4)
        ]
        assert [o.action for o in outcomes] == ["retry", "retry", "retry", "failed"]
        assert [o.retry_count for o in outcomes] == [1, 2, 3, 3]
        assert await state_machine.get_state("c1") is None

    async def test_no_retry_fails_immediately(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        workflow_id = await state_machine.create("c1", "dealer_verification", DEALER)
        outcome = await state_machine.record_error("c1", "fatal", "greet_dealer")
        assert outcome.action == "failed"
        assert outcome.retry_count == 0
        workflow = await store.get_workflow(workflow_id)
        assert workflow is not None
        assert workflow.status == WorkflowStatus.FAILED
        assert workflow.error_state is not None
        assert workflow.error_state.error == "fatal"
        assert workflow.error_state.step == "greet_dealer"

    async def test_failed_workflow_frees_conversation(
        self, state_machine: WorkflowStateMachine
    ) -> None:
        old = await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.record_error("c1", "fatal", "greet_dealer")
        new = await state_machine.create("c1", "dealer_verification", DEALER)
        assert new != old

    async def test_requires_active(self, state_machine: WorkflowStateMachine) -> None:
        with pytest.raises(NoActiveWorkflowError):
            await state_machine.record_error("c1", "boom", "s", should_retry=True)


# -- Pause / resume / complete -----------------------------------------------


class TestLifecycle:
    async def test_pause_and_resume(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        paused = await state_machine.pause("c1", "waiting on dealer")
        assert paused.status == WorkflowStatus.PAUSED
        assert paused.error_state is not None
        assert paused.verification_locked is False

        resumed = await state_machine.resume("c1", HandlerName.DEALER_INTERACTION)
        assert resumed.status == WorkflowStatus.ACTIVE
        assert resumed.error_state is None

    async def test_resume_requires_paused(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        with pytest.raises(NoPausedWorkflowError):
            await state_machine.resume("c1", DEALER)

    async def test_complete(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "paperwork_flow", HandlerName.CUSTOMER_PAPERWORK)
        workflow = await state_machine.complete("c1", {"signed": True})
        assert workflow.status == WorkflowStatus.COMPLETED
        assert workflow.workflow_data.get("signed") is True
        assert await state_machine.get_state("c1") is None

    async def test_complete_requires_active(self, state_machine: WorkflowStateMachine) -> None:
        with pytest.raises(NoActiveWorkflowError):
            await state_machine.complete("c1")


# -- Verification attempts ---------------------------------------------------


class TestVerificationAttempts:
    async def test_failure_counts(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "customer_transaction", CUSTOMER)
        outcome = await state_machine.record_verification_attempt("c1", success=False)
        assert outcome.verified is False
        assert outcome.attempts == 1
        assert outcome.locked is False

    async def test_success_resets(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "customer_transaction", CUSTOMER)
        await state_machine.record_verification_attempt("c1", success=False)
        outcome = await state_machine.record_verification_attempt("c1", success=True)
        assert outcome.verified is True
        view = await state_machine.get_state("c1")
        assert view is not None
        assert view.workflow.verification_attempts == 0

    async def test_second_failure_pauses(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "customer_transaction", CUSTOMER)
        await state_machine.record_verification_attempt("c1", success=False)
        outcome = await state_machine.record_verification_attempt("c1", success=False)
        assert outcome.locked is True
        assert outcome.attempts == 2

        view = await state_machine.get_state("c1")
        assert view is not None
        assert view.status == WorkflowStatus.PAUSED
        assert view.workflow.error_state is not None
        assert view.workflow.verification_locked is True

        resumed = await state_machine.resume("c1", CUSTOMER)
        assert resumed.verification_attempts == 0
        assert resumed.error_state is None
        assert resumed.verification_locked is False

    async def test_custom_limit(self, store: InMemoryStore) -> None:
        machine = WorkflowStateMachine(store, max_verification_attempts=3)
        await machine.create("c1", "customer_transaction", CUSTOMER)
        for _ in range(2):
            assert not (await machine.record_verification_attempt("c1", False)).locked
        assert (await machine.record_verification_attempt("c1", False)).locked


# -- Queries -----------------------------------------------------------------


class TestGetState:
    async def test_none_without_workflow(self, state_machine: WorkflowStateMachine) -> None:
        assert await state_machine.get_state("c1") is None

    async def test_view_progress(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.advance_step("c1", "request_deal_number", mark_complete=True)
        await state_machine.advance_step("c1", "verify_deal_data", mark_complete=True)
        view = await state_machine.get_state("c1")
        assert view is not None
        assert view.progress_percentage == 33
        assert view.next_step == "check_completeness"
        assert view.can_handoff is True
        assert view.steps[0] == "greet_dealer"

    async def test_last_step_has_no_next(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "aftermarket_flow", HandlerName.AFTERMARKET_OFFER)
        await state_machine.advance_step("c1", "update_deal")
        view = await state_machine.get_state("c1")
        assert view is not None
        assert view.next_step is None

    async def test_terminal_type_cannot_hand_off(
        self, state_machine: WorkflowStateMachine
    ) -> None:
        await state_machine.create("c1", "customer_transaction", CUSTOMER)
        view = await state_machine.get_state("c1")
        assert view is not None
        assert view.can_handoff is False

    async def test_pending_cannot_hand_off(self, state_machine: WorkflowStateMachine) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.initiate_handoff("c1", CUSTOMER, "x")
        view = await state_machine.get_state("c1")
        assert view is not None
        assert view.can_handoff is False


class TestReset:
    async def test_reset_completes_everything_open(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.record_error("c1", "fatal", "greet_dealer")
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.initiate_handoff("c1", CUSTOMER, "x")

        assert await state_machine.reset("c1") == 2
        statuses = {w.status for w in await store.list_workflows("c1")}
        assert statuses == {WorkflowStatus.COMPLETED}
        assert await state_machine.reset("c1") == 0


class TestInvariants:
    async def test_at_most_one_open_workflow(
        self, state_machine: WorkflowStateMachine, store: InMemoryStore
    ) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        assert len(await _open_workflows(store, "c1")) == 1
        await state_machine.advance_step("c1", "request_deal_number", mark_complete=True)
        await state_machine.initiate_handoff("c1", CUSTOMER, "ready")
        assert len(await _open_workflows(store, "c1")) == 1
        await state_machine.complete_handoff("c1", CUSTOMER, "customer_transaction")
        assert len(await _open_workflows(store, "c1")) == 1
        await state_machine.create("c1", "aftermarket_flow", HandlerName.AFTERMARKET_OFFER)
        assert len(await _open_workflows(store, "c1")) == 1
        await state_machine.complete("c1")
        assert len(await _open_workflows(store, "c1")) == 0


class TestTelemetry:
    async def test_transitions_emit_spans(
        self, state_machine: WorkflowStateMachine, telemetry: MockTelemetryProvider
    ) -> None:
        await state_machine.create("c1", "dealer_verification", DEALER)
        await state_machine.advance_step("c1", "request_deal_number")
        spans = telemetry.get_spans(SpanKind.WORKFLOW_TRANSITION)
        assert [s.name for s in spans] == ["workflow.create", "workflow.advance"]
        assert spans[0].attributes["workflow.operation"] == "create"
        assert spans[0].conversation_id == "c1"

    async def test_failed_transition_marks_span(
        self, state_machine: WorkflowStateMachine, telemetry: MockTelemetryProvider
    ) -> None:
        with pytest.raises(NoActiveWorkflowError):
            await state_machine.complete("c1")
        span = telemetry.get_spans(SpanKind.WORKFLOW_TRANSITION)[-1]
        assert span.status == "error"
