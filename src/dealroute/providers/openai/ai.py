"""OpenAI backend: generates replies via the Chat Completions API.

The Chat Completions API is stateless, so thread history is kept in
process, keyed by the thread IDs this backend hands out. At most
``max_threads`` threads are kept, least recently used first out, and each
thread is trimmed to its last ``max_history_messages`` messages.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import OrderedDict
from typing import Any

from dealroute.providers.ai.base import (
    AIToolCall,
    GenerationBackend,
    GenerationBackendError,
    GenerationRequest,
    GenerationResponse,
)
from dealroute.providers.openai.config import OpenAIConfig

logger = logging.getLogger("dealroute.providers.openai")


class OpenAIGenerationBackend(GenerationBackend):
    """Generation backend using the OpenAI Chat Completions API."""

    def __init__(self, config: OpenAIConfig) -> None:
        try:
            import openai as _openai
        except ImportError as exc:
            raise ImportError(
                "openai is required for OpenAIGenerationBackend. "
                "Install it with: pip install dealroute[openai]"
            ) from exc
        self._config = config
        self._api_status_error = _openai.APIStatusError
        self._client = _openai.AsyncOpenAI(
            api_key=config.api_key.get_secret_value(),
            base_url=config.base_url,
            timeout=config.timeout,
        )
        self._threads: OrderedDict[str, list[dict[str, Any]]] = OrderedDict()

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._config.model

    async def create_thread(self, *, title: str = "", user_id: str | None = None) -> str:
        thread_id = f"thr_{uuid.uuid4().hex}"
        self._touch(thread_id)
        logger.debug("Created thread %s (%s)", thread_id, title)
        return thread_id

    def history(self, thread_id: str) -> list[dict[str, Any]]:
        """Return a copy of the stored messages for a thread."""
        return list(self._threads.get(thread_id, []))

    def forget(self, thread_id: str) -> None:
        """Drop a thread's stored history."""
        self._threads.pop(thread_id, None)

    def _touch(self, thread_id: str) -> list[dict[str, Any]]:
        history = self._threads.setdefault(thread_id, [])
        self._threads.move_to_end(thread_id)
        while len(self._threads) > self._config.max_threads:
            evicted, _ = self._threads.popitem(last=False)
            logger.debug("Evicted thread %s", evicted)
        return history

    def _turn_messages(self, request: GenerationRequest) -> list[dict[str, Any]]:
        """Messages this request appends to the thread."""
        turn: list[dict[str, Any]] = [
            {"role": "tool", "tool_call_id": r.tool_call_id, "content": r.result}
            for r in request.tool_results
        ]
        if request.prompt:
            turn.append({"role": "user", "content": request.prompt})
        return turn

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        history = self._touch(request.thread_id)
        turn = self._turn_messages(request)

        messages: list[dict[str, Any]] = []
        system_prompt = request.system_prompt or self._config.system_prompts.get(
            str(request.metadata.get("handler", ""))
        )
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(history)
        messages.extend(turn)

        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "messages": messages,
        }
        if request.tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in request.tools
            ]

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except self._api_status_error as exc:
            retryable = exc.status_code in (429, 500, 502, 503)
            raise GenerationBackendError(
                str(exc),
                retryable=retryable,
                provider=self.name,
                status_code=exc.status_code,
            ) from exc
        except Exception as exc:
            raise GenerationBackendError(str(exc), provider=self.name) from exc

        if not response.choices:
            raise GenerationBackendError("Empty response from backend", provider=self.name)

        choice = response.choices[0]
        usage: dict[str, int] = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
            }

        tool_calls: list[AIToolCall] = []
        if choice.message.tool_calls:
            for tc in choice.message.tool_calls:
                try:
                    args = json.loads(tc.function.arguments)
                except (json.JSONDecodeError, TypeError):
                    args = {"raw": tc.function.arguments}
                tool_calls.append(AIToolCall(id=tc.id, name=tc.function.name, arguments=args))

        text = choice.message.content or ""
        assistant: dict[str, Any] = {"role": "assistant", "content": text or None}
        if tool_calls:
            assistant["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in tool_calls
            ]
        # Commit only after a successful call so a failed turn leaves no trace.
        history.extend(turn)
        history.append(assistant)
        _trim(history, self._config.max_history_messages)

        return GenerationResponse(
            text=text,
            finish_reason=choice.finish_reason,
            usage=usage,
            metadata={"model": response.model},
            tool_calls=tool_calls,
        )


def _trim(history: list[dict[str, Any]], limit: int) -> None:
    """Drop the oldest messages past *limit*, starting the thread on a user turn."""
    if len(history) <= limit:
        return
    start = len(history) - limit
    while start < len(history) and history[start]["role"] != "user":
        start += 1
    if start < len(history):
        del history[:start]
