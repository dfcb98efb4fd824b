"""Per-turn control flow: route, apply the workflow action, orchestrate, record."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from dealroute.core.config import DispatcherConfig
from dealroute.core.errors import DealRouteError
from dealroute.core.locks import ConversationLockManager, InMemoryLockManager
from dealroute.models.conversation import Conversation
from dealroute.models.enums import RouteAction, WorkflowStatus
from dealroute.models.routing import RouteDecision, ToolRunResult, TurnResult
from dealroute.models.workflow import Workflow, WorkflowView
from dealroute.orchestration.registry import (
    get_definition,
    successor_handler,
    workflow_type_for_handler,
)
from dealroute.orchestration.router import Router
from dealroute.orchestration.state import WorkflowStateMachine
from dealroute.orchestration.threads import ThreadRegistry, UserSessionService
from dealroute.orchestration.tool_orchestrator import ToolOrchestrator, extract_deal_number
from dealroute.providers.ai.base import GenerationBackend
from dealroute.store.base import ConversationStore
from dealroute.store.deals import DealRepository, InMemoryDealRepository
from dealroute.store.memory import InMemoryStore
from dealroute.store.seed import demo_deals
from dealroute.telemetry.base import Attr, SpanKind, TelemetryProvider
from dealroute.telemetry.config import TelemetryConfig, resolve_telemetry
from dealroute.tools.operations import DealTools

logger = logging.getLogger("dealroute.core.dispatcher")


class Dispatcher:
    """Stateful turn dispatcher.

    Each inbound message is handled under its conversation's lock: the
    router picks a handler and action, the routed action is applied to the
    workflow, the tool orchestrator produces the reply, and the
    conversation record and user session are updated. Turns for different
    conversations run fully in parallel.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        store: ConversationStore | None = None,
        deals: DealRepository | None = None,
        *,
        config: DispatcherConfig | None = None,
        lock_manager: ConversationLockManager | None = None,
        telemetry: TelemetryConfig | TelemetryProvider | None = None,
    ) -> None:
        """Wire the components together.

        Args:
            backend: Free-text generation backend.
            store: Conversation, thread, workflow, and user-session storage.
                Defaults to ``InMemoryStore``.
            deals: Deal repository the tools operate on. Defaults to an
                in-memory repository seeded with the demo deals.
            config: Dispatcher settings. Defaults to ``DispatcherConfig()``.
            lock_manager: Per-conversation locking backend. Defaults to
                ``InMemoryLockManager``; supply a distributed implementation
                for multi-process deployments.
            telemetry: Telemetry provider or config. Defaults to
                ``NoopTelemetryProvider``.
        """
        self._config = config or DispatcherConfig()
        self._store = store or InMemoryStore()
        self._deals = deals or InMemoryDealRepository(demo_deals())
        self._backend = backend
        self._locks = lock_manager or InMemoryLockManager(max_locks=self._config.max_locks)
        self._telemetry = resolve_telemetry(telemetry)

        self._state = WorkflowStateMachine(
            self._store,
            locks=self._locks,
            telemetry=self._telemetry,
            max_verification_attempts=self._config.max_verification_attempts,
        )
        self._sessions = UserSessionService(self._store)
        self._threads = ThreadRegistry(self._store, backend)
        self._tools = DealTools(self._deals)
        self._router = Router(
            self._store,
            self._state,
            sessions=self._sessions,
            entry_handler=self._config.entry_handler,
            telemetry=self._telemetry,
        )
        self._orchestrator = ToolOrchestrator(
            self._tools,
            backend,
            self._threads,
            config=self._config,
            telemetry=self._telemetry,
        )

    # -- Components -----------------------------------------------------------

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def state_machine(self) -> WorkflowStateMachine:
        return self._state

    @property
    def router(self) -> Router:
        return self._router

    @property
    def orchestrator(self) -> ToolOrchestrator:
        return self._orchestrator

    @property
    def threads(self) -> ThreadRegistry:
        return self._threads

    @property
    def sessions(self) -> UserSessionService:
        return self._sessions

    @property
    def tools(self) -> DealTools:
        return self._tools

    # -- Turns ----------------------------------------------------------------

    async def handle_turn(
        self,
        message: str,
        conversation_id: str,
        user_name: str | None = None,
    ) -> TurnResult:
        """Process one inbound message end to end.

        Raises:
            UnknownWorkflowTypeError: If a routed handler maps to an
                unregistered workflow type.
        """
        with self._telemetry.span(
            SpanKind.TURN, "dispatcher.turn", conversation_id=conversation_id
        ) as span_id:
            async with self._locks.locked(conversation_id):
                conversation = await self._ensure_conversation(conversation_id)
                decision = await self._router.route(message, conversation_id, user_name)
                deal_number = extract_deal_number(message)
                workflow_id, workflow_action = await self._apply(
                    decision, conversation_id, deal_number
                )

                view = await self._state.get_state(conversation_id)
                workflow = view.workflow if view is not None else None
                result = await self._orchestrator.execute_with_tools(
                    decision.handler,
                    message,
                    conversation_id,
                    decision.tool_requirements,
                    user_id=decision.user_id,
                    context=workflow.workflow_data.values if workflow else None,
                    current_step=workflow.current_step if workflow else None,
                    verification_locked=workflow.verification_locked if workflow else False,
                )

                await self._record_outcome(conversation_id, workflow, result)
                await self._update_conversation(conversation, decision.handler, result)
                if user_name:
                    await self._update_session(user_name, decision.handler, deal_number)

            self._telemetry.set_attribute(span_id, Attr.HANDLER, decision.handler)
            self._telemetry.set_attribute(span_id, Attr.ROUTE_ACTION, str(decision.action))
            self._telemetry.set_attribute(span_id, Attr.TOOL_COUNT, len(result.tools_executed))
            self._telemetry.set_attribute(span_id, Attr.TOOL_ERROR_COUNT, len(result.tool_errors))

        logger.info(
            "Turn handled by %s (%s)",
            decision.handler,
            decision.reason,
            extra={
                "conversation_id": conversation_id,
                "handler": decision.handler,
                "workflow_id": workflow_id,
                "success": result.success,
            },
        )
        return TurnResult(
            decision=decision,
            result=result,
            workflow_id=workflow_id,
            workflow_action=workflow_action,
        )

    async def _ensure_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self._store.get_conversation(conversation_id)
        if conversation is None:
            conversation = await self._store.create_conversation(Conversation(id=conversation_id))
        return conversation

    async def _apply(
        self,
        decision: RouteDecision,
        conversation_id: str,
        deal_number: str | None,
    ) -> tuple[str | None, str | None]:
        """Apply the routed action to the workflow; return (workflow id, what was done)."""
        handler = decision.handler
        current = decision.workflow.workflow if decision.workflow is not None else None

        if decision.action == RouteAction.START:
            workflow_type = workflow_type_for_handler(handler)
            if workflow_type is None:
                return None, None
            initial = {"deal_number": deal_number} if deal_number else None
            workflow_id = await self._state.create(
                conversation_id,
                workflow_type,
                handler,
                user_id=decision.user_id,
                initial_data=initial,
            )
            return workflow_id, "created"

        if current is None:
            return None, None

        if decision.action == RouteAction.HANDOFF:
            new_type = None
            if not get_definition(current.workflow_type).allows(handler):
                new_type = workflow_type_for_handler(handler)
            workflow_id = await self._state.complete_handoff(conversation_id, handler, new_type)
            return workflow_id, "handed_off"

        if decision.action == RouteAction.RESUME:
            if current.verification_locked:
                logger.info(
                    "Workflow %s stays locked after failed verification",
                    current.id,
                    extra={"conversation_id": conversation_id, "workflow_id": current.id},
                )
                return current.id, "locked"
            workflow = await self._state.resume(conversation_id, handler)
            return workflow.id, "resumed"

        if deal_number and current.workflow_data.get("deal_number") != deal_number:
            await self._state.advance_step(
                conversation_id,
                current.current_step,
                workflow_data={"deal_number": deal_number},
            )
        return current.id, "continued"

    async def _record_outcome(
        self,
        conversation_id: str,
        workflow: Workflow | None,
        result: ToolRunResult,
    ) -> None:
        if workflow is None or workflow.status != WorkflowStatus.ACTIVE:
            return
        if not result.success:
            outcome = await self._state.record_error(
                conversation_id,
                "generation backend failure",
                workflow.current_step,
                should_retry=True,
            )
            logger.warning(
                "Recorded backend failure on workflow %s: %s (retry %d)",
                workflow.id,
                outcome.action,
                outcome.retry_count,
                extra={"conversation_id": conversation_id, "workflow_id": workflow.id},
            )
            return
        verified = result.metadata.get("verified")
        if verified is not None:
            await self._state.record_verification_attempt(conversation_id, bool(verified))

    async def _update_conversation(
        self, conversation: Conversation, handler: str, result: ToolRunResult
    ) -> None:
        changes: dict[str, Any] = {"current_handler": handler}
        if result.thread_id:
            changes["active_thread_id"] = result.thread_id
        if conversation.current_handler != handler:
            changes["last_handoff_at"] = datetime.now(UTC)
        await self._store.update_conversation(conversation.model_copy(update=changes))

    async def _update_session(
        self, user_name: str, handler: str, deal_number: str | None
    ) -> None:
        session = await self._sessions.get_or_create(user_name)
        fields: dict[str, Any] = {"current_handler": handler}
        if deal_number:
            fields["current_deal_number"] = deal_number
        await self._sessions.update(session.id, **fields)

    # -- Workflow administration ----------------------------------------------

    async def request_handoff(
        self,
        conversation_id: str,
        target_handler: str | None = None,
        reason: str = "",
        handoff_data: Mapping[str, Any] | None = None,
    ) -> Workflow:
        """Ask for the next turn to go to another handler.

        Without *target_handler*, the handoff goes to the first handler of
        the workflow type's registered successor.

        Raises:
            NoActiveWorkflowError: If the conversation has no active workflow.
            DealRouteError: If no target is given and the type has no successor.
        """
        async with self._locks.locked(conversation_id):
            if target_handler is None:
                view = await self._state.get_state(conversation_id)
                if view is not None and view.status == WorkflowStatus.ACTIVE:
                    target_handler = successor_handler(view.workflow.workflow_type)
                    if target_handler is None:
                        raise DealRouteError(
                            f"Workflow type {view.workflow.workflow_type} has no successor; "
                            "pass target_handler explicitly"
                        )
            # initiate_handoff raises NoActiveWorkflowError when nothing is active.
            return await self._state.initiate_handoff(
                conversation_id,
                target_handler or "",
                reason or "handoff requested",
                handoff_data,
            )

    async def resume_workflow(
        self, conversation_id: str, handler: str | None = None
    ) -> Workflow:
        """Reactivate a paused workflow, including one locked by failed verification.

        Raises:
            NoPausedWorkflowError: If the conversation has no paused workflow.
        """
        async with self._locks.locked(conversation_id):
            if handler is None:
                view = await self._state.get_state(conversation_id)
                if view is not None:
                    handler = view.workflow.current_handler
            return await self._state.resume(conversation_id, handler or "")

    async def workflow_info(self, conversation_id: str) -> WorkflowView | None:
        """Current open workflow with progress, for inspection."""
        return await self._state.get_state(conversation_id)

    async def reset(self, conversation_id: str) -> int:
        """Complete every unfinished workflow for a conversation."""
        return await self._state.reset(conversation_id)

    def close(self) -> None:
        self._telemetry.close()
