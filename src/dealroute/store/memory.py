"""In-memory implementation of ConversationStore."""

from __future__ import annotations

from collections.abc import Collection

from dealroute.core.errors import DealRouteError, ThreadRecordNotFoundError
from dealroute.models.conversation import Conversation, ThreadRecord, UserSession
from dealroute.models.enums import WorkflowStatus
from dealroute.models.workflow import Workflow
from dealroute.store.base import ConversationStore


class InMemoryStore(ConversationStore):
    """Dict-based in-memory store for development and testing."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._threads: dict[str, ThreadRecord] = {}
        self._conversation_threads: dict[str, list[str]] = {}
        self._workflows: dict[str, Workflow] = {}
        self._conversation_workflows: dict[str, list[str]] = {}
        self._user_sessions: dict[str, UserSession] = {}

    # Conversation operations

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        self._conversations[conversation.id] = conversation.model_copy(deep=True)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation is not None else None

    async def update_conversation(self, conversation: Conversation) -> Conversation:
        if conversation.id not in self._conversations:
            raise DealRouteError(f"Conversation not found: {conversation.id}")
        self._conversations[conversation.id] = conversation.model_copy(deep=True)
        return conversation

    # Thread operations

    async def add_thread(self, record: ThreadRecord) -> ThreadRecord:
        self._threads[record.id] = record.model_copy(deep=True)
        self._conversation_threads.setdefault(record.conversation_id, []).append(record.id)
        return record

    async def get_thread(self, record_id: str) -> ThreadRecord | None:
        record = self._threads.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    async def update_thread(self, record: ThreadRecord) -> ThreadRecord:
        if record.id not in self._threads:
            raise ThreadRecordNotFoundError(record.id)
        self._threads[record.id] = record.model_copy(deep=True)
        return record

    async def find_thread(self, conversation_id: str, handler: str) -> ThreadRecord | None:
        for record_id in self._conversation_threads.get(conversation_id, []):
            record = self._threads[record_id]
            if record.handler == handler:
                return record.model_copy(deep=True)
        return None

    async def find_latest_thread(self, conversation_id: str) -> ThreadRecord | None:
        records = [self._threads[rid] for rid in self._conversation_threads.get(conversation_id, [])]
        if not records:
            return None
        # max() keeps the first of equal timestamps; scan newest-inserted first
        latest = max(reversed(records), key=lambda r: r.last_used)
        return latest.model_copy(deep=True)

    # Workflow operations

    async def add_workflow(self, workflow: Workflow) -> Workflow:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        self._conversation_workflows.setdefault(workflow.conversation_id, []).append(workflow.id)
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow is not None else None

    async def update_workflow(self, workflow: Workflow) -> Workflow:
        if workflow.id not in self._workflows:
            raise DealRouteError(f"Workflow not found: {workflow.id}")
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    async def list_workflows(
        self,
        conversation_id: str,
        statuses: Collection[WorkflowStatus] | None = None,
    ) -> list[Workflow]:
        results: list[Workflow] = []
        for workflow_id in reversed(self._conversation_workflows.get(conversation_id, [])):
            workflow = self._workflows[workflow_id]
            if statuses is not None and workflow.status not in statuses:
                continue
            results.append(workflow.model_copy(deep=True))
        return results

    # User session operations

    async def add_user_session(self, session: UserSession) -> UserSession:
        self._user_sessions[session.id] = session.model_copy(deep=True)
        return session

    async def get_user_session(self, session_id: str) -> UserSession | None:
        session = self._user_sessions.get(session_id)
        return session.model_copy(deep=True) if session is not None else None

    async def find_user_session(
        self, name: str | None = None, phone: str | None = None
    ) -> UserSession | None:
        if name:
            for session in self._user_sessions.values():
                if session.name == name:
                    return session.model_copy(deep=True)
        if phone:
            for session in self._user_sessions.values():
                if session.phone == phone:
                    return session.model_copy(deep=True)
        return None

    async def update_user_session(self, session: UserSession) -> UserSession:
        if session.id not in self._user_sessions:
            raise DealRouteError(f"User session not found: {session.id}")
        self._user_sessions[session.id] = session.model_copy(deep=True)
        return session
