"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from dealroute.core.config import DispatcherConfig
from dealroute.core.dispatcher import Dispatcher
from dealroute.core.locks import InMemoryLockManager
from dealroute.orchestration.router import Router
from dealroute.orchestration.state import WorkflowStateMachine
from dealroute.orchestration.threads import ThreadRegistry, UserSessionService
from dealroute.orchestration.tool_orchestrator import ToolOrchestrator
from dealroute.providers.ai.mock import MockGenerationBackend
from dealroute.store.deals import InMemoryDealRepository
from dealroute.store.memory import InMemoryStore
from dealroute.store.seed import demo_deals
from dealroute.telemetry.mock import MockTelemetryProvider
from dealroute.tools.operations import DealTools


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay."""

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def deals() -> InMemoryDealRepository:
    return InMemoryDealRepository(demo_deals())


@pytest.fixture
def tools(deals: InMemoryDealRepository) -> DealTools:
    return DealTools(deals)


@pytest.fixture
def backend() -> MockGenerationBackend:
    return MockGenerationBackend(responses=["Sure, happy to help."])


@pytest.fixture
def telemetry() -> MockTelemetryProvider:
    return MockTelemetryProvider()


@pytest.fixture
def locks() -> InMemoryLockManager:
    return InMemoryLockManager()


@pytest.fixture
def state_machine(
    store: InMemoryStore, locks: InMemoryLockManager, telemetry: MockTelemetryProvider
) -> WorkflowStateMachine:
    return WorkflowStateMachine(store, locks=locks, telemetry=telemetry)


@pytest.fixture
def sessions(store: InMemoryStore) -> UserSessionService:
    return UserSessionService(store)


@pytest.fixture
def threads(store: InMemoryStore, backend: MockGenerationBackend) -> ThreadRegistry:
    return ThreadRegistry(store, backend)


@pytest.fixture
def router(
    store: InMemoryStore,
    state_machine: WorkflowStateMachine,
    sessions: UserSessionService,
) -> Router:
    return Router(store, state_machine, sessions=sessions)


@pytest.fixture
def orchestrator(
    tools: DealTools,
    backend: MockGenerationBackend,
    threads: ThreadRegistry,
    telemetry: MockTelemetryProvider,
) -> ToolOrchestrator:
    return ToolOrchestrator(tools, backend, threads, telemetry=telemetry)


@pytest.fixture
def dispatcher(
    store: InMemoryStore,
    deals: InMemoryDealRepository,
    backend: MockGenerationBackend,
    telemetry: MockTelemetryProvider,
) -> Dispatcher:
    return Dispatcher(
        backend,
        store,
        deals,
        config=DispatcherConfig(generation_timeout=5.0),
        telemetry=telemetry,
    )
