"""Workflow records and the views derived from them."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from dealroute.models.context import ContextMap
from dealroute.models.enums import WorkflowStatus, WorkflowType

VERIFICATION_EXHAUSTED = "verification attempts exhausted"


class ErrorState(BaseModel):
    """Last recorded error for a workflow."""

    error: str
    step: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    retry_count: int = 0


class Workflow(BaseModel):
    """A persisted instance of a multi-step business process.

    ``next_handler`` and ``handoff_reason`` are present only while the
    workflow is ``handoff_pending``.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    conversation_id: str
    user_id: str | None = None
    workflow_type: WorkflowType
    current_handler: str
    current_step: str
    step_data: ContextMap = Field(default_factory=ContextMap)
    workflow_data: ContextMap = Field(default_factory=ContextMap)
    completed_steps: list[str] = Field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    next_handler: str | None = None
    handoff_reason: str | None = None
    error_state: ErrorState | None = None
    verification_attempts: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def _check_handoff_target(self) -> Workflow:
        pending = self.status == WorkflowStatus.HANDOFF_PENDING
        if pending != (self.next_handler is not None):
            raise ValueError("next_handler must be set if and only if status is handoff_pending")
        if not pending and self.handoff_reason is not None:
            raise ValueError("handoff_reason is only allowed while status is handoff_pending")
        return self

    @property
    def is_open(self) -> bool:
        """True unless the workflow has reached a terminal status."""
        return self.status not in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED)

    @property
    def verification_locked(self) -> bool:
        """True while paused because verification attempts ran out."""
        return (
            self.status == WorkflowStatus.PAUSED
            and self.error_state is not None
            and self.error_state.error == VERIFICATION_EXHAUSTED
        )


class WorkflowView(BaseModel):
    """A workflow enriched with registry-derived progress information."""

    workflow: Workflow
    steps: list[str] = Field(default_factory=list)
    progress_percentage: int = 0
    next_step: str | None = None
    can_handoff: bool = False

    @property
    def status(self) -> WorkflowStatus:
        return self.workflow.status


class ErrorOutcome(BaseModel):
    """Result of ``WorkflowStateMachine.record_error``."""

    action: Literal["retry", "failed"]
    retry_count: int


class VerificationOutcome(BaseModel):
    """Result of ``WorkflowStateMachine.record_verification_attempt``."""

    verified: bool
    attempts: int
    locked: bool = False
