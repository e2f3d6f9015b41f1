from agentrelay.llm.client import (
    FunctionCall,
    LLMCallError,
    LLMClient,
    LLMRequest,
    LLMResponse,
    LLMTransientError,
    OpenAIChatClient,
    build_chat_messages,
)
from agentrelay.llm.llm_setup import (
    PROVIDER_CONFIGS,
    LLMConfig,
    ModelResolutionError,
    ModelTier,
    ModelTiers,
    resolve_model,
)

__all__ = [
    "FunctionCall",
    "LLMCallError",
    "LLMClient",
    "LLMRequest",
    "LLMResponse",
    "LLMTransientError",
    "OpenAIChatClient",
    "build_chat_messages",
    "PROVIDER_CONFIGS",
    "LLMConfig",
    "ModelResolutionError",
    "ModelTier",
    "ModelTiers",
    "resolve_model",
]
