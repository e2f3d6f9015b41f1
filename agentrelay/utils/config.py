"""
Configuration management utilities for loading and processing config files.

Provides the file loaders (YAML/JSON with ``${VAR}`` substitution) and the
strongly-typed ``RelayConfig`` with its runner, MCP, tracing and logging
sections.
"""

from __future__ import annotations

import os
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


class ConfigError(ValueError):
    """Raised when a configuration file is missing, malformed or incomplete."""


_ENV_PATTERN = re.compile(r'\$\{([^}]+)\}')


def _substitute_env_vars(obj: Any) -> Any:
    """
    Recursively substitute ${VAR_NAME} with environment variable values.
    Unset variables become empty strings.
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if isinstance(obj, str):
        return _ENV_PATTERN.sub(lambda m: os.getenv(m.group(1), ''), obj)
    return obj


def load_config(config_file: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file with env variable substitution.

    Args:
        config_file: Path to config file (YAML or JSON)

    Returns:
        Dictionary containing the configuration

    Example:
        config = load_config("configs/default.yaml")
    """
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    with open(config_path, 'r') as f:
        if config_path.suffix in ['.yaml', '.yml']:
            config = yaml.safe_load(f)
        elif config_path.suffix == '.json':
            config = json.load(f)
        else:
            raise ConfigError(f"Unsupported config file format: {config_path.suffix}")

    return _substitute_env_vars(config or {})


def load_mapping_from_path(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a mapping from YAML or JSON file, supporting env substitution."""
    data = load_config(Path(path))
    if not isinstance(data, MutableMapping):
        raise ConfigError(f"Configuration file must define a mapping, got {type(data)!r}")
    return dict(data)


def get_api_key_from_env(provider: str) -> Optional[str]:
    """Auto-load API key from environment based on provider.

    Returns ``None`` for providers without a key (e.g. ``local``).
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "azureopenai": "AZURE_OPENAI_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "deepseek": "DEEPSEEK_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "openrouter": "OPENROUTER_API_KEY",
        "groq": "GROQ_API_KEY",
    }

    env_var = env_map.get(provider)
    if not env_var:
        return None

    api_key = os.getenv(env_var)
    if not api_key:
        raise ConfigError(
            f"API key not found. Set {env_var} in environment or .env file."
        )
    return api_key


# ============================================================================
# Core Configuration Classes
# ============================================================================

class RunnerSettings(BaseModel):
    """Limits for the agent loop: LLM retries and per-call timeouts (seconds)."""

    max_llm_retries: int = Field(default=3, ge=0)
    llm_retry_base_delay: float = Field(default=1.0, ge=0)
    llm_retry_max_delay: float = Field(default=32.0, ge=0)
    llm_timeout: Optional[float] = Field(default=120.0, gt=0)
    tool_timeout: Optional[float] = Field(default=60.0, gt=0)


class MCPSettings(BaseModel):
    """MCP servers and how their tools are surfaced to agents."""

    enabled: bool = False
    servers: Dict[str, Any] = Field(default_factory=dict)
    mcp_servers: Dict[str, Any] = Field(default_factory=dict, alias="mcpServers")
    tool_allowlist: Optional[List[str]] = None
    tool_mode: Literal["all", "router"] = "all"
    max_tools_per_turn: int = Field(default=20, gt=0)
    max_mcp_per_turn: int = Field(default=8, gt=0)
    max_connection_retries: int = Field(default=3, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def server_config(self) -> Dict[str, Any]:
        """Server mapping in the shape accepted by ``MCPRegistry.from_config``."""
        if self.servers:
            return {"servers": self.servers}
        return {"mcpServers": self.mcp_servers}


class TracingSettings(BaseModel):
    enabled: bool = False
    workflow_name: str = "agentrelay"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Optional[str] = None


class AgentOverride(BaseModel):
    """Per-agent overrides applied on top of the built-in definitions."""

    max_iterations: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = None
    model: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class RelayConfig(BaseModel):
    """Strongly-typed configuration for an agentrelay application."""

    # Provider/LLM configuration
    provider: str = "openai"
    model: Optional[str] = None
    main_model: Optional[str] = None
    mini_model: Optional[str] = None
    nano_model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model_settings: Dict[str, Any] = Field(default_factory=dict)
    azure_config: Optional[Dict[str, Any]] = None

    # Orchestration
    default_agent: str = "web_task_agent"
    routes: Dict[str, str] = Field(default_factory=dict)
    agents: Dict[str, AgentOverride] = Field(default_factory=dict)

    runner: RunnerSettings = Field(default_factory=RunnerSettings)
    mcp: MCPSettings = Field(default_factory=MCPSettings)
    tracing: TracingSettings = Field(default_factory=TracingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    config_file: Optional[str] = Field(default=None, exclude=True)

    model_config = ConfigDict(populate_by_name=True, extra="allow", protected_namespaces=())

    def llm_settings(self) -> Dict[str, Any]:
        """Mapping consumed by ``LLMConfig``."""
        return {
            "provider": self.provider,
            "api_key": self.api_key,
            "model": self.model,
            "main_model": self.main_model,
            "mini_model": self.mini_model,
            "nano_model": self.nano_model,
            "base_url": self.base_url,
            "model_settings": self.model_settings,
            "azure_config": self.azure_config or {},
        }

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain serialisable dictionary of the configuration."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RelayConfig":
        """Instantiate the config object from a mapping."""
        config = cls.model_validate(data)
        if not config.api_key:
            config.api_key = get_api_key_from_env(config.provider)
        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RelayConfig":
        """Instantiate the config object from a YAML or JSON file."""
        data = load_mapping_from_path(path)
        config = cls.from_dict(data)
        config.config_file = str(path)
        return config


def resolve_config(source: Union[None, str, Path, Mapping[str, Any], RelayConfig] = None) -> RelayConfig:
    """Build a ``RelayConfig`` from a path, a mapping, an instance or nothing.

    ``.env`` is loaded first so ``${VAR}`` references and provider API keys
    can come from it.
    """
    load_dotenv()
    if isinstance(source, RelayConfig):
        return source
    if source is None:
        return RelayConfig.from_dict({})
    if isinstance(source, Mapping):
        return RelayConfig.from_dict(source)
    return RelayConfig.from_file(source)
