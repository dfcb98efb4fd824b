"""Mock generation backend for testing."""

from __future__ import annotations

import asyncio
import itertools

from dealroute.providers.ai.base import (
    GenerationBackend,
    GenerationBackendError,
    GenerationRequest,
    GenerationResponse,
)


class MockGenerationBackend(GenerationBackend):
    """Round-robin response backend for tests.

    ``errors`` is consumed one entry per ``generate`` call: an exception
    entry is raised, ``None`` lets the call succeed. Once exhausted every
    call succeeds.
    """

    def __init__(
        self,
        responses: list[str] | None = None,
        *,
        ai_responses: list[GenerationResponse] | None = None,
        errors: list[BaseException | None] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.responses = responses or ["Hello from AI"]
        self._ai_responses = ai_responses
        self._errors = list(errors or [])
        self._delay = delay
        self._index = 0
        self._thread_ids = itertools.count(1)
        self.calls: list[GenerationRequest] = []
        self.threads: list[tuple[str, str]] = []

    @property
    def model_name(self) -> str:
        return "mock"

    async def create_thread(self, *, title: str = "", user_id: str | None = None) -> str:
        thread_id = f"thread-{next(self._thread_ids)}"
        self.threads.append((thread_id, title))
        return thread_id

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.calls.append(request)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._errors:
            error = self._errors.pop(0)
            if error is not None:
                raise error
        if self._ai_responses:
            resp = self._ai_responses[self._index % len(self._ai_responses)]
            self._index += 1
            return resp
        text = self.responses[self._index % len(self.responses)]
        self._index += 1
        return GenerationResponse(
            text=text,
            finish_reason="stop",
            usage={"prompt_tokens": 10, "completion_tokens": 5},
        )


class FailingGenerationBackend(MockGenerationBackend):
    """Backend whose every ``generate`` call fails."""

    def __init__(self, message: str = "backend unavailable") -> None:
        super().__init__()
        self._message = message

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.calls.append(request)
        raise GenerationBackendError(self._message, retryable=True, provider="mock")
