"""Abstract base class for conversation storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection

from dealroute.models.conversation import Conversation, ThreadRecord, UserSession
from dealroute.models.enums import WorkflowStatus
from dealroute.models.workflow import Workflow


class ConversationStore(ABC):
    """Persistent storage for conversations, threads, workflows, and user sessions.

    Implement this ABC to plug in any storage backend (SQL, Redis, etc.).
    The library ships with `InMemoryStore` for development and testing.
    Implementations must return copies: callers mutate what they read and
    write it back explicitly.
    """

    # Conversation operations

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        """Persist a new conversation."""
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID, or ``None`` if it doesn't exist."""
        ...

    @abstractmethod
    async def update_conversation(self, conversation: Conversation) -> Conversation:
        """Update an existing conversation."""
        ...

    # Thread operations

    @abstractmethod
    async def add_thread(self, record: ThreadRecord) -> ThreadRecord:
        """Store a new thread record."""
        ...

    @abstractmethod
    async def get_thread(self, record_id: str) -> ThreadRecord | None:
        """Get a thread record by its record ID."""
        ...

    @abstractmethod
    async def update_thread(self, record: ThreadRecord) -> ThreadRecord:
        """Update an existing thread record."""
        ...

    @abstractmethod
    async def find_thread(self, conversation_id: str, handler: str) -> ThreadRecord | None:
        """Find the first thread record stored for a (conversation, handler) pair."""
        ...

    @abstractmethod
    async def find_latest_thread(self, conversation_id: str) -> ThreadRecord | None:
        """Find the most recently used thread record of a conversation."""
        ...

    # Workflow operations

    @abstractmethod
    async def add_workflow(self, workflow: Workflow) -> Workflow:
        """Store a new workflow."""
        ...

    @abstractmethod
    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        """Get a workflow by ID."""
        ...

    @abstractmethod
    async def update_workflow(self, workflow: Workflow) -> Workflow:
        """Update an existing workflow."""
        ...

    @abstractmethod
    async def list_workflows(
        self,
        conversation_id: str,
        statuses: Collection[WorkflowStatus] | None = None,
    ) -> list[Workflow]:
        """List a conversation's workflows, newest first, optionally filtered by status."""
        ...

    async def find_latest_workflow(
        self,
        conversation_id: str,
        statuses: Collection[WorkflowStatus] | None = None,
    ) -> Workflow | None:
        """Return the newest workflow whose status is in *statuses*."""
        workflows = await self.list_workflows(conversation_id, statuses)
        return workflows[0] if workflows else None

    # User session operations

    @abstractmethod
    async def add_user_session(self, session: UserSession) -> UserSession:
        """Store a new user session."""
        ...

    @abstractmethod
    async def get_user_session(self, session_id: str) -> UserSession | None:
        """Get a user session by ID."""
        ...

    @abstractmethod
    async def find_user_session(
        self, name: str | None = None, phone: str | None = None
    ) -> UserSession | None:
        """Find a user session by name, falling back to phone."""
        ...

    @abstractmethod
    async def update_user_session(self, session: UserSession) -> UserSession:
        """Update an existing user session."""
        ...
