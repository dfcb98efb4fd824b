"""Workflow state machine.

Owns the authoritative per-conversation workflow record. Every mutating
operation runs under the conversation's lock and re-reads the record
inside it, so at most one open workflow exists per conversation and a
pending handoff has exactly one target.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from dealroute.core.errors import (
    NoActiveWorkflowError,
    NoPausedWorkflowError,
    NoPendingHandoffError,
    WorkflowPreconditionError,
)
from dealroute.core.locks import ConversationLockManager, InMemoryLockManager
from dealroute.models.context import ContextMap
from dealroute.models.enums import WorkflowStatus
from dealroute.models.workflow import (
    ErrorOutcome,
    VERIFICATION_EXHAUSTED,
    ErrorState,
    VerificationOutcome,
    Workflow,
    WorkflowView,
)
from dealroute.orchestration.registry import get_definition
from dealroute.store.base import ConversationStore
from dealroute.telemetry.base import Attr, SpanKind, TelemetryProvider
from dealroute.telemetry.config import TelemetryConfig, resolve_telemetry

logger = logging.getLogger("dealroute.orchestration.state")

RETRY_BUDGET = 3

_OPEN_STATUSES = frozenset(
    {WorkflowStatus.ACTIVE, WorkflowStatus.PAUSED, WorkflowStatus.HANDOFF_PENDING}
)


def _now() -> datetime:
    return datetime.now(UTC)


class WorkflowStateMachine:
    """Create, advance, hand off, pause, resume, fail, and complete workflows."""

    def __init__(
        self,
        store: ConversationStore,
        *,
        locks: ConversationLockManager | None = None,
        telemetry: TelemetryConfig | TelemetryProvider | None = None,
        max_verification_attempts: int = 2,
    ) -> None:
        self._store = store
        self._locks = locks or InMemoryLockManager()
        self._telemetry = resolve_telemetry(telemetry)
        self._max_verification_attempts = max_verification_attempts

    @property
    def locks(self) -> ConversationLockManager:
        return self._locks

    # -- Internals ------------------------------------------------------------

    async def _require(
        self,
        conversation_id: str,
        status: WorkflowStatus,
        error: type[WorkflowPreconditionError],
    ) -> Workflow:
        workflow = await self._store.find_latest_workflow(conversation_id, {status})
        if workflow is None:
            raise error(conversation_id)
        return workflow

    async def _save(self, workflow: Workflow, **changes: Any) -> Workflow:
        # model_validate re-runs the handoff-target validator on every write.
        data = {**workflow.model_dump(), **changes, "updated_at": _now()}
        updated = Workflow.model_validate(data)
        return await self._store.update_workflow(updated)

    def _log(self, operation: str, workflow: Workflow) -> None:
        logger.info(
            "Workflow %s: %s",
            operation,
            workflow.status,
            extra={
                "conversation_id": workflow.conversation_id,
                "workflow_id": workflow.id,
                "workflow_type": str(workflow.workflow_type),
                "handler": workflow.current_handler,
                "step": workflow.current_step,
            },
        )

    def _span_attrs(self, operation: str, workflow: Workflow) -> dict[str, Any]:
        return {
            Attr.WORKFLOW_OPERATION: operation,
            Attr.WORKFLOW_ID: workflow.id,
            Attr.WORKFLOW_TYPE: str(workflow.workflow_type),
            Attr.WORKFLOW_STATUS: str(workflow.status),
            Attr.HANDLER: workflow.current_handler,
        }

    def _record(self, operation: str, workflow: Workflow, span_id: str) -> None:
        for key, value in self._span_attrs(operation, workflow).items():
            self._telemetry.set_attribute(span_id, key, value)
        self._log(operation, workflow)

    # -- Operations -----------------------------------------------------------

    async def create(
        self,
        conversation_id: str,
        workflow_type: str,
        initial_handler: str,
        *,
        user_id: str | None = None,
        initial_data: Mapping[str, Any] | None = None,
    ) -> str:
        """Start a workflow, or merge into the conversation's open one.

        Creation is idempotent per conversation: an existing open workflow
        absorbs ``initial_data`` and takes the new handler and type, and its
        id is returned.

        Raises:
            UnknownWorkflowTypeError: If *workflow_type* is not registered.
        """
        definition = get_definition(workflow_type)
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION, "workflow.create", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                existing = await self._store.find_latest_workflow(conversation_id, _OPEN_STATUSES)
                if existing is not None:
                    changes: dict[str, Any] = {
                        "current_handler": initial_handler,
                        "workflow_type": definition.workflow_type,
                        "workflow_data": existing.workflow_data.merged(initial_data),
                    }
                    if not definition.has_step(existing.current_step):
                        changes["current_step"] = definition.first_step
                        changes["completed_steps"] = [
                            s for s in existing.completed_steps if definition.has_step(s)
                        ]
                    if user_id and existing.user_id is None:
                        changes["user_id"] = user_id
                    workflow = await self._save(existing, **changes)
                    self._record("merge", workflow, span_id)
                    return workflow.id

                workflow = Workflow(
                    conversation_id=conversation_id,
                    user_id=user_id,
                    workflow_type=definition.workflow_type,
                    current_handler=initial_handler,
                    current_step=definition.first_step,
                    workflow_data=ContextMap.of(initial_data),
                )
                await self._store.add_workflow(workflow)
                self._record("create", workflow, span_id)
                return workflow.id

    async def advance_step(
        self,
        conversation_id: str,
        new_step: str,
        *,
        step_data: Mapping[str, Any] | None = None,
        workflow_data: Mapping[str, Any] | None = None,
        mark_complete: bool = False,
    ) -> Workflow:
        """Move to *new_step*, merging scratch and workflow-level data.

        With ``mark_complete`` the step being left is appended to
        ``completed_steps`` unless it is already there.

        Raises:
            NoActiveWorkflowError: If the conversation has no active workflow.
            UnknownWorkflowStepError: If *new_step* is not a step of the workflow type.
        """
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION, "workflow.advance", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                workflow = await self._require(
                    conversation_id, WorkflowStatus.ACTIVE, NoActiveWorkflowError
                )
                get_definition(workflow.workflow_type).require_step(new_step)
                completed = list(workflow.completed_steps)
                if mark_complete and workflow.current_step not in completed:
                    completed.append(workflow.current_step)
                workflow = await self._save(
                    workflow,
                    current_step=new_step,
                    step_data=workflow.step_data.merged(step_data),
                    workflow_data=workflow.workflow_data.merged(workflow_data),
                    completed_steps=completed,
                )
                self._record("advance", workflow, span_id)
                return workflow

    async def initiate_handoff(
        self,
        conversation_id: str,
        target_handler: str,
        reason: str,
        handoff_data: Mapping[str, Any] | None = None,
    ) -> Workflow:
        """Mark the active workflow ``handoff_pending`` toward *target_handler*.

        Raises:
            NoActiveWorkflowError: If the conversation has no active workflow.
        """
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION, "workflow.handoff", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                workflow = await self._require(
                    conversation_id, WorkflowStatus.ACTIVE, NoActiveWorkflowError
                )
                workflow = await self._save(
                    workflow,
                    status=WorkflowStatus.HANDOFF_PENDING,
                    next_handler=target_handler,
                    handoff_reason=reason,
                    workflow_data=workflow.workflow_data.merged(handoff_data),
                )
                self._record("initiate_handoff", workflow, span_id)
                return workflow

    async def complete_handoff(
        self,
        conversation_id: str,
        new_handler: str,
        new_workflow_type: str | None = None,
    ) -> str:
        """Finish a pending handoff and return the id of the now-active workflow.

        Switching type completes the old record and starts a fresh one that
        carries the workflow-level data forward unchanged. Otherwise the
        same record returns to ``active`` under *new_handler*.

        Raises:
            NoPendingHandoffError: If no handoff is pending.
            UnknownWorkflowTypeError: If *new_workflow_type* is not registered.
        """
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION,
            "workflow.complete_handoff",
            conversation_id=conversation_id,
        ) as span_id:
            async with self._locks.locked(conversation_id):
                workflow = await self._require(
                    conversation_id, WorkflowStatus.HANDOFF_PENDING, NoPendingHandoffError
                )
                if new_workflow_type is not None and new_workflow_type != workflow.workflow_type:
                    definition = get_definition(new_workflow_type)
                    closed = await self._save(
                        workflow,
                        status=WorkflowStatus.COMPLETED,
                        next_handler=None,
                        handoff_reason=None,
                    )
                    self._log("close_for_handoff", closed)
                    successor = Workflow(
                        conversation_id=conversation_id,
                        user_id=workflow.user_id,
                        workflow_type=definition.workflow_type,
                        current_handler=new_handler,
                        current_step=definition.first_step,
                        workflow_data=workflow.workflow_data,
                    )
                    await self._store.add_workflow(successor)
                    self._record("complete_handoff", successor, span_id)
                    return successor.id

                workflow = await self._save(
                    workflow,
                    status=WorkflowStatus.ACTIVE,
                    current_handler=new_handler,
                    next_handler=None,
                    handoff_reason=None,
                )
                self._record("complete_handoff", workflow, span_id)
                return workflow.id

    async def record_error(
        self,
        conversation_id: str,
        error: str,
        step: str,
        *,
        should_retry: bool = False,
    ) -> ErrorOutcome:
        """Record an error against the active workflow.

        While the retry count is under the budget of three, a retryable
        error bumps the count and keeps the workflow active. Anything else
        fails the workflow.

        Raises:
            NoActiveWorkflowError: If the conversation has no active workflow.
        """
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION, "workflow.error", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                workflow = await self._require(
                    conversation_id, WorkflowStatus.ACTIVE, NoActiveWorkflowError
                )
                retry_count = workflow.error_state.retry_count if workflow.error_state else 0
                if should_retry and retry_count < RETRY_BUDGET:
                    retry_count += 1
                    workflow = await self._save(
                        workflow,
                        error_state=ErrorState(error=error, step=step, retry_count=retry_count),
                    )
                    self._record("retry", workflow, span_id)
                    return ErrorOutcome(action="retry", retry_count=retry_count)

                workflow = await self._save(
                    workflow,
                    status=WorkflowStatus.FAILED,
                    error_state=ErrorState(error=error, step=step, retry_count=retry_count),
                )
                self._record("fail", workflow, span_id)
                logger.warning(
                    "Workflow %s failed at step %s: %s",
                    workflow.id,
                    step,
                    error,
                    extra={"conversation_id": conversation_id, "workflow_id": workflow.id},
                )
                return ErrorOutcome(action="failed", retry_count=retry_count)

    async def pause(self, conversation_id: str, reason: str | None = None) -> Workflow:
        """Suspend the active workflow until ``resume`` is called.

        Raises:
            NoActiveWorkflowError: If the conversation has no active workflow.
        """
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION, "workflow.pause", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                workflow = await self._require(
                    conversation_id, WorkflowStatus.ACTIVE, NoActiveWorkflowError
                )
                changes: dict[str, Any] = {"status": WorkflowStatus.PAUSED}
                if reason:
                    changes["error_state"] = ErrorState(error=reason, step=workflow.current_step)
                workflow = await self._save(workflow, **changes)
                self._record("pause", workflow, span_id)
                return workflow

    async def resume(self, conversation_id: str, resume_handler: str) -> Workflow:
        """Reactivate a paused workflow under *resume_handler* and clear its error state.

        Raises:
            NoPausedWorkflowError: If the conversation has no paused workflow.
        """
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION, "workflow.resume", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                workflow = await self._require(
                    conversation_id, WorkflowStatus.PAUSED, NoPausedWorkflowError
                )
                workflow = await self._save(
                    workflow,
                    status=WorkflowStatus.ACTIVE,
                    current_handler=resume_handler,
                    error_state=None,
                    verification_attempts=0,
                )
                self._record("resume", workflow, span_id)
                return workflow

    async def complete(
        self,
        conversation_id: str,
        completion_data: Mapping[str, Any] | None = None,
    ) -> Workflow:
        """Merge *completion_data* and mark the active workflow completed.

        Raises:
            NoActiveWorkflowError: If the conversation has no active workflow.
        """
        with self._telemetry.span(
            SpanKind.WORKFLOW_TRANSITION, "workflow.complete", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                workflow = await self._require(
                    conversation_id, WorkflowStatus.ACTIVE, NoActiveWorkflowError
                )
                workflow = await self._save(
                    workflow,
                    status=WorkflowStatus.COMPLETED,
                    workflow_data=workflow.workflow_data.merged(completion_data),
                )
                self._record("complete", workflow, span_id)
                return workflow

    async def record_verification_attempt(
        self, conversation_id: str, success: bool
    ) -> VerificationOutcome:
        """Count a verification-code entry against the active workflow.

        Success resets the counter. Reaching the attempt limit pauses the
        workflow with an error state; the conversation itself carries on
        but the dispatcher leaves the workflow paused until an explicit
        ``resume`` clears the block.

        Raises:
            NoActiveWorkflowError: If the conversation has no active workflow.
        """
        async with self._locks.locked(conversation_id):
            workflow = await self._require(
                conversation_id, WorkflowStatus.ACTIVE, NoActiveWorkflowError
            )
            if success:
                if workflow.verification_attempts:
                    await self._save(workflow, verification_attempts=0)
                return VerificationOutcome(verified=True, attempts=0)

            attempts = workflow.verification_attempts + 1
            if attempts < self._max_verification_attempts:
                await self._save(workflow, verification_attempts=attempts)
                return VerificationOutcome(verified=False, attempts=attempts)

            workflow = await self._save(
                workflow,
                verification_attempts=attempts,
                status=WorkflowStatus.PAUSED,
                error_state=ErrorState(
                    error=VERIFICATION_EXHAUSTED, step=workflow.current_step
                ),
            )
            self._log("verification_locked", workflow)
            return VerificationOutcome(verified=False, attempts=attempts, locked=True)

    # -- Queries --------------------------------------------------------------

    async def get_state(self, conversation_id: str) -> WorkflowView | None:
        """Return the conversation's open workflow with progress details, if any."""
        workflow = await self._store.find_latest_workflow(conversation_id, _OPEN_STATUSES)
        if workflow is None:
            return None
        return describe(workflow)

    async def reset(self, conversation_id: str) -> int:
        """Mark every non-completed workflow completed and return how many changed.

        Administrative recovery for tests and debugging.
        """
        async with self._locks.locked(conversation_id):
            count = 0
            for workflow in await self._store.list_workflows(conversation_id):
                if workflow.status == WorkflowStatus.COMPLETED:
                    continue
                await self._save(
                    workflow,
                    status=WorkflowStatus.COMPLETED,
                    next_handler=None,
                    handoff_reason=None,
                )
                count += 1
            if count:
                logger.info(
                    "Reset %d workflow(s)", count, extra={"conversation_id": conversation_id}
                )
            return count


def describe(workflow: Workflow) -> WorkflowView:
    """Enrich a workflow with registry-derived progress."""
    definition = get_definition(workflow.workflow_type)
    return WorkflowView(
        workflow=workflow,
        steps=list(definition.steps),
        progress_percentage=definition.progress(workflow.completed_steps),
        next_step=definition.next_step(workflow.current_step),
        can_handoff=(
            workflow.status == WorkflowStatus.ACTIVE and definition.successor is not None
        ),
    )
