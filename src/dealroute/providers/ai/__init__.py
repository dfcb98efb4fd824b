"""Generation backend interface and test doubles."""

from dealroute.providers.ai.base import (
    AITool,
    AIToolCall,
    AIToolResult,
    GenerationBackend,
    GenerationBackendError,
    GenerationRequest,
    GenerationResponse,
)
from dealroute.providers.ai.mock import FailingGenerationBackend, MockGenerationBackend

__all__ = [
    "AITool",
    "AIToolCall",
    "AIToolResult",
    "FailingGenerationBackend",
    "GenerationBackend",
    "GenerationBackendError",
    "GenerationRequest",
    "GenerationResponse",
    "MockGenerationBackend",
]
