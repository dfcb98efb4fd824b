"""Abstract base class for generation backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from dealroute.core.errors import DealRouteError


class AITool(BaseModel):
    """Tool definition for function calling."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class AIToolCall(BaseModel):
    """A tool call requested by the backend."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class AIToolResult(BaseModel):
    """Tool execution result sent back to the backend."""

    tool_call_id: str
    name: str
    result: str


class GenerationBackendError(DealRouteError):
    """Error from a generation backend call.

    Attributes:
        retryable: Whether the caller could retry the request.
        provider: Name of the backend that raised the error.
        status_code: HTTP status code from the backend, if available.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        provider: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.provider = provider
        self.status_code = status_code


class GenerationRequest(BaseModel):
    """One generation call under a backend thread."""

    thread_id: str
    prompt: str
    system_prompt: str | None = None
    tools: list[AITool] = Field(default_factory=list)
    tool_results: list[AIToolResult] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class GenerationResponse(BaseModel):
    """Response from a generation backend."""

    text: str
    finish_reason: str | None = None
    usage: dict[str, int] = Field(default_factory=dict)
    tool_calls: list[AIToolCall] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class GenerationBackend(ABC):
    """Black-box free-text generation service with durable threads.

    The backend owns thread history: callers allocate a thread once per
    (conversation, handler) pair and send one prompt per turn.
    """

    @property
    def name(self) -> str:
        """Backend name (e.g. 'openai')."""
        return self.__class__.__name__

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier (e.g. 'gpt-4o')."""
        ...

    @abstractmethod
    async def create_thread(self, *, title: str = "", user_id: str | None = None) -> str:
        """Allocate a new thread and return its ID."""
        ...

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Generate a reply to ``request.prompt`` in ``request.thread_id``.

        Raises:
            GenerationBackendError: If the backend call fails.
        """
        ...
