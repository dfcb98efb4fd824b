"""OpenAI-compatible generation backend."""

from dealroute.providers.openai.ai import OpenAIGenerationBackend
from dealroute.providers.openai.config import OpenAIConfig

__all__ = ["OpenAIConfig", "OpenAIGenerationBackend"]
