"""Session/thread registry and user sessions.

Maps each (conversation, handler) pair to one durable backend thread.
Thread creation is two-phase: the registry record is written first with an
empty ``thread_id`` placeholder, then the caller asks the generation
backend for a real thread and writes it back with ``set_thread_id``.

Two near-simultaneous lookups for the same pair may both insert a record.
That race is tolerated: ``find_thread`` returns the first inserted record,
so all later turns converge on one thread.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from dealroute.core.errors import DealRouteError, ThreadRecordNotFoundError
from dealroute.models.conversation import ThreadLookup, ThreadRecord, UserSession
from dealroute.models.enums import UserType
from dealroute.providers.ai.base import GenerationBackend
from dealroute.store.base import ConversationStore

logger = logging.getLogger("dealroute.orchestration.threads")


class ThreadRegistry:
    """Lazily allocates and reuses one backend thread per (conversation, handler)."""

    def __init__(self, store: ConversationStore, backend: GenerationBackend | None = None) -> None:
        self._store = store
        self._backend = backend

    async def get_or_create_thread(self, conversation_id: str, handler: str) -> ThreadLookup:
        """Return the pair's thread, creating a placeholder record on first use."""
        record = await self._store.find_thread(conversation_id, handler)
        if record is not None:
            record = record.model_copy(update={"last_used": datetime.now(UTC)})
            await self._store.update_thread(record)
            return ThreadLookup(
                record_id=record.id,
                thread_id=record.thread_id,
                is_new=False,
                context=dict(record.context.values),
            )

        record = ThreadRecord(conversation_id=conversation_id, handler=handler)
        await self._store.add_thread(record)
        logger.debug(
            "Allocated thread record %s",
            record.id,
            extra={"conversation_id": conversation_id, "handler": handler},
        )
        return ThreadLookup(record_id=record.id, thread_id="", is_new=True)

    async def set_thread_id(self, record_id: str, thread_id: str) -> ThreadRecord:
        """Write the backend's thread id back onto a record.

        Raises:
            ThreadRecordNotFoundError: If *record_id* does not exist.
        """
        record = await self._store.get_thread(record_id)
        if record is None:
            raise ThreadRecordNotFoundError(f"Thread record not found: {record_id}")
        record = record.model_copy(update={"thread_id": thread_id, "last_used": datetime.now(UTC)})
        return await self._store.update_thread(record)

    async def update_context(self, record_id: str, updates: Mapping[str, Any]) -> ThreadRecord:
        """Shallow-merge *updates* into a thread record's context."""
        record = await self._store.get_thread(record_id)
        if record is None:
            raise ThreadRecordNotFoundError(f"Thread record not found: {record_id}")
        record = record.model_copy(update={"context": record.context.merged(updates)})
        return await self._store.update_thread(record)

    async def resolve(
        self,
        conversation_id: str,
        handler: str,
        user_id: str | None = None,
    ) -> ThreadLookup:
        """Return a lookup that always carries a real backend thread id.

        Runs both phases of thread creation. A record left holding the
        empty placeholder by an earlier failed turn is repaired here.
        """
        lookup = await self.get_or_create_thread(conversation_id, handler)
        if lookup.thread_id:
            return lookup
        if self._backend is None:
            raise DealRouteError("ThreadRegistry has no generation backend to allocate threads")
        thread_id = await self._backend.create_thread(
            title=f"{handler} - {conversation_id}", user_id=user_id
        )
        await self.set_thread_id(lookup.record_id, thread_id)
        logger.info(
            "Created backend thread %s",
            thread_id,
            extra={"conversation_id": conversation_id, "handler": handler},
        )
        return lookup.model_copy(update={"thread_id": thread_id, "is_new": True})


class UserSessionService:
    """Find, create, and update the user sessions the router consults."""

    def __init__(self, store: ConversationStore) -> None:
        self._store = store

    async def find(self, name: str | None = None, phone: str | None = None) -> UserSession | None:
        if not name and not phone:
            return None
        return await self._store.find_user_session(name=name, phone=phone)

    async def get_or_create(
        self,
        name: str,
        phone: str | None = None,
        user_type: UserType = UserType.CUSTOMER,
    ) -> UserSession:
        session = await self.find(name=name, phone=phone)
        if session is not None:
            return session
        session = UserSession(name=name, phone=phone, user_type=user_type)
        await self._store.add_user_session(session)
        return session

    async def update(
        self,
        session_id: str,
        *,
        context: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> UserSession:
        """Set *fields* on a session and shallow-merge *context*.

        Raises:
            DealRouteError: If the session does not exist.
        """
        session = await self._store.get_user_session(session_id)
        if session is None:
            raise DealRouteError(f"User session not found: {session_id}")
        unknown = set(fields) - set(UserSession.model_fields)
        if unknown:
            raise DealRouteError(f"Unknown user session fields: {', '.join(sorted(unknown))}")
        update: dict[str, Any] = {**fields, "updated_at": datetime.now(UTC)}
        update["context"] = session.context.merged(context)
        return await self._store.update_user_session(session.model_copy(update=update))
