"""Turn router.

Picks the handler and action for an inbound message by strict priority,
first match wins:

1. An open workflow (pending handoff, active, or paused).
2. The conversation's assigned handler, when it already has a thread.
3. The last-active handler on a known user session.
4. Cold-start keyword rules, in order, falling back to the entry handler.

The router only reads state. Tool detection runs independently of the
routing tier that fired and is attached to every decision.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from dealroute.models.enums import HandlerName, RouteAction, RouteReason, WorkflowStatus
from dealroute.models.routing import ConversationContext, RouteDecision
from dealroute.orchestration.classifier import classify
from dealroute.orchestration.state import WorkflowStateMachine
from dealroute.orchestration.threads import UserSessionService
from dealroute.store.base import ConversationStore
from dealroute.telemetry.base import Attr, SpanKind, TelemetryProvider
from dealroute.telemetry.config import TelemetryConfig, resolve_telemetry

logger = logging.getLogger("dealroute.orchestration.router")

_DIGITS = re.compile(r"\d+")


class RoutingRule(BaseModel):
    """A cold-start rule: if ``predicate`` holds for the lowercased message, route to ``handler``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    handler: str
    reason: RouteReason
    predicate: Callable[[str], bool]

    def matches(self, text: str) -> bool:
        return self.predicate(text)


def _any_of(*keywords: str) -> Callable[[str], bool]:
    return lambda text: any(k in text for k in keywords)


def _dealer_vocabulary(text: str) -> bool:
    if "deal" in text and ("number" in text or _DIGITS.search(text)):
        return True
    return _any_of("dealer", "inventory", "update deal", "verify")(text)


COLD_START_RULES: tuple[RoutingRule, ...] = (
    RoutingRule(
        handler=HandlerName.DEALER_INTERACTION,
        reason=RouteReason.DEALER_KEYWORDS,
        predicate=_dealer_vocabulary,
    ),
    RoutingRule(
        handler=HandlerName.CUSTOMER_TRANSACTION,
        reason=RouteReason.TRANSACTION_KEYWORDS,
        predicate=_any_of("finish", "complete", "transaction", "buy", "purchase", "sign"),
    ),
    RoutingRule(
        handler=HandlerName.CUSTOMER_PAPERWORK,
        reason=RouteReason.PAPERWORK_KEYWORDS,
        predicate=_any_of("paperwork", "document", "dmv", "title", "registration"),
    ),
    RoutingRule(
        handler=HandlerName.CUSTOMER_GENERAL_INFO,
        reason=RouteReason.GENERAL_INFO_KEYWORDS,
        predicate=_any_of("payment", "rate", "bank", "finance", "estimate"),
    ),
    RoutingRule(
        handler=HandlerName.AFTERMARKET_OFFER,
        reason=RouteReason.AFTERMARKET_KEYWORDS,
        predicate=_any_of("warranty", "protection", "aftermarket", "add-on"),
    ),
    RoutingRule(
        handler=HandlerName.TOOL_HANDLER,
        reason=RouteReason.DIRECT_TOOL_REQUEST,
        predicate=_any_of("execute tool", "run calculation", "tool handler"),
    ),
)


def cold_start(
    message: str,
    rules: tuple[RoutingRule, ...] = COLD_START_RULES,
    entry_handler: str = HandlerName.MAIN_ENTRY,
) -> tuple[str, RouteReason]:
    """Return the first matching rule's handler and reason, or the entry handler."""
    text = message.lower()
    for rule in rules:
        if rule.matches(text):
            return rule.handler, rule.reason
    return entry_handler, RouteReason.DEFAULT_ENTRY


_WORKFLOW_ROUTES = {
    WorkflowStatus.HANDOFF_PENDING: (RouteAction.HANDOFF, RouteReason.WORKFLOW_HANDOFF),
    WorkflowStatus.ACTIVE: (RouteAction.CONTINUE, RouteReason.WORKFLOW_CONTINUATION),
    WorkflowStatus.PAUSED: (RouteAction.RESUME, RouteReason.WORKFLOW_RESUME),
}


class Router:
    """Decides which handler receives the next turn and why."""

    def __init__(
        self,
        store: ConversationStore,
        state_machine: WorkflowStateMachine,
        *,
        sessions: UserSessionService | None = None,
        rules: tuple[RoutingRule, ...] = COLD_START_RULES,
        entry_handler: str = HandlerName.MAIN_ENTRY,
        telemetry: TelemetryConfig | TelemetryProvider | None = None,
    ) -> None:
        self._store = store
        self._state = state_machine
        self._sessions = sessions or UserSessionService(store)
        self._rules = rules
        self._entry_handler = entry_handler
        self._telemetry = resolve_telemetry(telemetry)

    async def route(
        self,
        message: str,
        conversation_id: str,
        user_hint: str | None = None,
    ) -> RouteDecision:
        """Route one inbound message.

        Args:
            message: Raw inbound text.
            conversation_id: Conversation the message belongs to.
            user_hint: Name or phone of the sender, used to find a user session.
        """
        with self._telemetry.span(
            SpanKind.ROUTE, "router.route", conversation_id=conversation_id
        ) as span_id:
            decision = await self._decide(message, conversation_id, user_hint)
            self._telemetry.set_attribute(span_id, Attr.HANDLER, decision.handler)
            self._telemetry.set_attribute(span_id, Attr.ROUTE_ACTION, str(decision.action))
            self._telemetry.set_attribute(span_id, Attr.ROUTE_REASON, str(decision.reason))

        logger.debug(
            "Routed to %s (%s, %s)",
            decision.handler,
            decision.action,
            decision.reason,
            extra={
                "conversation_id": conversation_id,
                "handler": decision.handler,
                "route_reason": str(decision.reason),
            },
        )
        return decision

    async def _decide(
        self, message: str, conversation_id: str, user_hint: str | None
    ) -> RouteDecision:
        requirements = classify(message)
        conversation = await self._store.get_conversation(conversation_id)
        recent_thread = await self._store.find_latest_thread(conversation_id)
        session = None
        if user_hint:
            session = await self._sessions.find(name=user_hint) or await self._sessions.find(
                phone=user_hint
            )

        base = {
            "tool_requirements": requirements,
            "has_existing_thread": recent_thread is not None,
            "user_id": session.id if session else None,
            "conversation": ConversationContext(
                current_handler=conversation.current_handler if conversation else None,
                active_thread_id=conversation.active_thread_id if conversation else None,
                last_handoff_at=conversation.last_handoff_at if conversation else None,
            ),
        }

        view = await self._state.get_state(conversation_id)
        if view is not None:
            workflow = view.workflow
            action, reason = _WORKFLOW_ROUTES[workflow.status]
            handler = (
                workflow.next_handler
                if workflow.status == WorkflowStatus.HANDOFF_PENDING and workflow.next_handler
                else workflow.current_handler
            )
            return RouteDecision(
                handler=handler, action=action, reason=reason, workflow=view, **base
            )

        if conversation is not None and conversation.current_handler and recent_thread:
            return RouteDecision(
                handler=conversation.current_handler,
                action=RouteAction.CONTINUE,
                reason=RouteReason.CONVERSATION_CONTINUITY,
                **base,
            )

        if session is not None and session.current_handler:
            return RouteDecision(
                handler=session.current_handler,
                action=RouteAction.CONTINUE,
                reason=RouteReason.USER_SESSION_STATE,
                **base,
            )

        handler, reason = cold_start(message, self._rules, self._entry_handler)
        return RouteDecision(handler=handler, action=RouteAction.START, reason=reason, **base)
