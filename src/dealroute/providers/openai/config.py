"""OpenAI backend configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr


class OpenAIConfig(BaseModel):
    """OpenAI generation backend configuration.

    Attributes:
        api_key: API key for authentication.
        base_url: Custom base URL for OpenAI-compatible APIs (e.g. Venice,
            Ollama, LM Studio). If None, uses the default OpenAI API.
        model: Model identifier to use.
        max_tokens: Maximum tokens in the response.
        temperature: Sampling temperature.
        system_prompts: Per-handler system instructions, keyed by handler name.
        max_threads: Threads kept in memory; the least recently used is
            dropped first.
        max_history_messages: Messages kept per thread.
    """

    api_key: SecretStr
    base_url: str | None = None
    model: str = "gpt-4o"
    max_tokens: int = 1024
    temperature: float = 0.7
    timeout: float = 120.0
    """HTTP request timeout in seconds."""
    system_prompts: dict[str, str] = Field(default_factory=dict)
    max_threads: int = Field(default=1000, ge=1)
    max_history_messages: int = Field(default=50, ge=2)
