"""Tests for the thread registry and user sessions."""

from __future__ import annotations

import pytest

from dealroute.core.errors import DealRouteError, ThreadRecordNotFoundError
from dealroute.models.enums import HandlerName, UserType
from dealroute.orchestration.threads import ThreadRegistry, UserSessionService
from dealroute.providers.ai.mock import MockGenerationBackend
from dealroute.store.memory import InMemoryStore


class TestGetOrCreateThread:
    async def test_first_lookup_allocates_placeholder(
        self, threads: ThreadRegistry, store: InMemoryStore
    ) -> None:
        lookup = await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        assert lookup.is_new is True
        assert lookup.thread_id == ""
        record = await store.get_thread(lookup.record_id)
        assert record is not None
        assert record.has_thread is False

    async def test_second_lookup_reuses_record(self, threads: ThreadRegistry) -> None:
        first = await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        await threads.set_thread_id(first.record_id, "t-1")
        second = await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        assert second.is_new is False
        assert second.record_id == first.record_id
        assert second.thread_id == "t-1"

    async def test_lookup_refreshes_last_used(
        self, threads: ThreadRegistry, store: InMemoryStore
    ) -> None:
        first = await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        before = (await store.get_thread(first.record_id)).last_used
        await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        after = (await store.get_thread(first.record_id)).last_used
        assert after >= before

    async def test_handlers_get_distinct_threads(self, threads: ThreadRegistry) -> None:
        a = await threads.resolve("c1", HandlerName.DEALER_INTERACTION)
        b = await threads.resolve("c1", HandlerName.CUSTOMER_TRANSACTION)
        assert a.thread_id != b.thread_id

    async def test_lookup_returns_context(self, threads: ThreadRegistry) -> None:
        first = await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        await threads.update_context(first.record_id, {"deal_number": "207"})
        again = await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        assert again.context == {"deal_number": "207"}


class TestSetThreadId:
    async def test_unknown_record(self, threads: ThreadRegistry) -> None:
        with pytest.raises(ThreadRecordNotFoundError):
            await threads.set_thread_id("missing", "t-1")

    async def test_update_context_unknown_record(self, threads: ThreadRegistry) -> None:
        with pytest.raises(ThreadRecordNotFoundError):
            await threads.update_context("missing", {"a": 1})

    async def test_update_context_bumps_version(self, threads: ThreadRegistry) -> None:
        lookup = await threads.get_or_create_thread("c1", HandlerName.DEALER_INTERACTION)
        record = await threads.update_context(lookup.record_id, {"a": 1})
        record = await threads.update_context(lookup.record_id, {"b": 2})
        assert record.context.values == {"a": 1, "b": 2}
        assert record.context.version == 2


class TestResolve:
    async def test_creates_backend_thread_once(
        self, threads: ThreadRegistry, backend: MockGenerationBackend
    ) -> None:
        first = await threads.resolve("c1", HandlerName.DEALER_INTERACTION, user_id="u1")
        second = await threads.resolve("c1", HandlerName.DEALER_INTERACTION)
        assert first.is_new is True
        assert first.thread_id == "thread-1"
        assert second.is_new is False
        assert second.thread_id == "thread-1"
        assert backend.threads == [("thread-1", "dealerInteraction - c1")]

    async def test_repairs_placeholder(
        self, threads: ThreadRegistry, backend: MockGenerationBackend
    ) -> None:
        placeholder = await threads.get_or_create_thread("c1", HandlerName.CUSTOMER_PAPERWORK)
        lookup = await threads.resolve("c1", HandlerName.CUSTOMER_PAPERWORK)
        assert lookup.record_id == placeholder.record_id
        assert lookup.thread_id == "thread-1"
        assert lookup.is_new is True

    async def test_requires_backend(self, store: InMemoryStore) -> None:
        registry = ThreadRegistry(store)
        with pytest.raises(DealRouteError):
            await registry.resolve("c1", HandlerName.DEALER_INTERACTION)


class TestUserSessionService:
    async def test_get_or_create_is_idempotent(self, sessions: UserSessionService) -> None:
        first = await sessions.get_or_create("Jane Doe", "555-0100")
        second = await sessions.get_or_create("Jane Doe")
        assert first.id == second.id
        assert first.user_type == UserType.CUSTOMER

    async def test_find_by_phone_fallback(self, sessions: UserSessionService) -> None:
        created = await sessions.get_or_create("Bob", "555-0199", UserType.DEALER)
        found = await sessions.find(name="Robert", phone="555-0199")
        assert found is not None
        assert found.id == created.id
        assert found.user_type == UserType.DEALER

    async def test_find_without_keys(self, sessions: UserSessionService) -> None:
        assert await sessions.find() is None

    async def test_update_merges_context(self, sessions: UserSessionService) -> None:
        session = await sessions.get_or_create("Jane Doe")
        await sessions.update(session.id, context={"a": 1})
        updated = await sessions.update(
            session.id, current_handler=HandlerName.AFTERMARKET_OFFER, context={"b": 2}
        )
        assert updated.current_handler == HandlerName.AFTERMARKET_OFFER
        assert updated.context.values == {"a": 1, "b": 2}

    async def test_update_unknown_field(self, sessions: UserSessionService) -> None:
        session = await sessions.get_or_create("Jane Doe")
        with pytest.raises(DealRouteError, match="Unknown user session fields"):
            await sessions.update(session.id, favourite_colour="red")

    async def test_update_missing_session(self, sessions: UserSessionService) -> None:
        with pytest.raises(DealRouteError):
            await sessions.update("missing", stage="x")
