"""Conversation, thread, and user-session models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from dealroute.models.context import ContextMap
from dealroute.models.enums import UserType


def _now() -> datetime:
    return datetime.now(UTC)


class Conversation(BaseModel):
    """A chat session.

    Only the dispatcher changes ``current_handler``; the core never deletes
    conversations.
    """

    id: str
    title: str = ""
    current_handler: str | None = None
    active_thread_id: str | None = None
    last_handoff_at: datetime | None = None
    created_at: datetime = Field(default_factory=_now)


class ThreadRecord(BaseModel):
    """Binds one (conversation, handler) pair to a backend thread.

    ``thread_id`` is empty until the two-phase create writes the backend's
    id back.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    conversation_id: str
    handler: str
    thread_id: str = ""
    context: ContextMap = Field(default_factory=ContextMap)
    created_at: datetime = Field(default_factory=_now)
    last_used: datetime = Field(default_factory=_now)

    @property
    def has_thread(self) -> bool:
        return bool(self.thread_id)


class ThreadLookup(BaseModel):
    """Result of ``ThreadRegistry.get_or_create_thread``."""

    record_id: str
    thread_id: str
    is_new: bool
    context: dict[str, Any] = Field(default_factory=dict)


class UserSession(BaseModel):
    """A known user and the handler they last talked to."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    phone: str | None = None
    user_type: UserType = UserType.CUSTOMER
    verified: bool = False
    current_deal_number: str | None = None
    current_handler: str | None = None
    stage: str = "initial"
    context: ContextMap = Field(default_factory=ContextMap)
    updated_at: datetime = Field(default_factory=_now)
