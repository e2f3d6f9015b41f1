from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from openai import AsyncAzureOpenAI, AsyncOpenAI

from agentrelay.llm.client import OpenAIChatClient

# Provider configurations - all providers are reached through an OpenAI-compatible endpoint
PROVIDER_CONFIGS = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
    },
    "deepseek": {
        "base_url": "https://api.deepseek.com/v1",
    },
    "openrouter": {
        "base_url": "https://openrouter.ai/api/v1",
    },
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
    },
    "anthropic": {
        "base_url": "https://api.anthropic.com/v1/",
    },
    "groq": {
        "base_url": "https://api.groq.com/openai/v1",
    },
    "local": {
        "base_url": None,  # Will be provided in config
        "default_api_key": "ollama",
    },
    "azureopenai": {
        "requires_azure": True,
    },
}

DEFAULT_MODELS = {
    "openai": "gpt-4.1",
    "gemini": "gemini-2.5-flash",
    "deepseek": "deepseek-chat",
    "anthropic": "claude-3-5-sonnet-20241022",
    "openrouter": "meta-llama/llama-3.2-3b-instruct:free",
    "groq": "llama-3.3-70b-versatile",
}


class ModelResolutionError(ValueError):
    """Raised when no configured model satisfies an agent's model selector."""


class ModelTier(str, Enum):
    """Symbolic model selectors resolved against the configured models."""

    MAIN = "main"
    MINI = "mini"
    NANO = "nano"


@dataclass(frozen=True)
class ModelTiers:
    """Configured models per tier. ``default`` is the user-selected model."""

    default: Optional[str] = None
    main: Optional[str] = None
    mini: Optional[str] = None
    nano: Optional[str] = None


_FALLBACK_CHAINS = {
    ModelTier.MAIN: ("main", "default"),
    ModelTier.MINI: ("mini", "main", "default"),
    ModelTier.NANO: ("nano", "mini", "main", "default"),
}


def resolve_model(selector: Union[str, ModelTier, None], tiers: ModelTiers) -> str:
    """Resolve an agent's model selector to a concrete model name.

    Explicit names are returned unchanged. Tiers fall back towards larger
    models: nano -> mini -> main -> default, mini -> main -> default.

    Raises:
        ModelResolutionError: if nothing in the chain is configured.
    """
    if isinstance(selector, str) and not isinstance(selector, ModelTier):
        try:
            selector = ModelTier(selector)
        except ValueError:
            return selector

    tier = selector or ModelTier.MAIN
    for attr in _FALLBACK_CHAINS[tier]:
        model = getattr(tiers, attr)
        if model:
            return model

    raise ModelResolutionError(
        f"No model configured for tier '{tier.value}'; configure the {tier.value} model or a default model"
    )


class LLMConfig:
    """Direct configuration system - no environment variables."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize LLM configuration from direct config.

        Args:
            config: Dictionary containing:
                - provider: str (e.g., "openai", "gemini", "deepseek")
                - api_key: str
                - model: str (optional, will use defaults)
                - mini_model / nano_model: str (optional tier models)
                - base_url: str (optional for custom endpoints)
                - azure_config: dict (for Azure OpenAI)
                - model_settings: dict (optional, for temperature etc.)
        """
        self.provider = config["provider"]
        self.api_key = config.get("api_key")
        self.config = config

        # Validate provider
        if self.provider not in PROVIDER_CONFIGS:
            valid = list(PROVIDER_CONFIGS.keys())
            raise ValueError(f"Invalid provider: {self.provider}. Available: {valid}")

        self.model_name = config.get("model") or DEFAULT_MODELS.get(self.provider, "gpt-4.1")
        self.tiers = ModelTiers(
            default=self.model_name,
            main=config.get("main_model") or self.model_name,
            mini=config.get("mini_model"),
            nano=config.get("nano_model"),
        )
        self.default_temperature = config.get("model_settings", {}).get("temperature", 0.1)

        # Set tracing if OpenAI key provided
        if self.provider == "openai" and self.api_key:
            from agents import set_tracing_export_api_key
            set_tracing_export_api_key(self.api_key)

    def create_openai_client(self) -> AsyncOpenAI:
        provider_config = PROVIDER_CONFIGS[self.provider]

        if provider_config.get("requires_azure"):
            azure_config = self.config.get("azure_config", {})
            return AsyncAzureOpenAI(
                api_key=self.api_key,
                azure_endpoint=azure_config.get("endpoint"),
                azure_deployment=azure_config.get("deployment"),
                api_version=azure_config.get("api_version", "2023-12-01-preview"),
            )

        # Standard OpenAI-compatible providers
        base_url = self.config.get("base_url") or provider_config["base_url"]
        api_key = self.api_key or provider_config.get("default_api_key", "key")
        return AsyncOpenAI(api_key=api_key, base_url=base_url)

    def create_client(self) -> OpenAIChatClient:
        return OpenAIChatClient(self.create_openai_client())


def tiers_for_context(tiers: ModelTiers, context: Any = None) -> ModelTiers:
    """Overlay the per-run models carried by a ``RunContext`` on ``tiers``."""
    if context is None:
        return tiers
    return ModelTiers(
        default=context.model or tiers.default,
        main=context.main_model or tiers.main,
        mini=context.mini_model or tiers.mini,
        nano=context.nano_model or tiers.nano,
    )
