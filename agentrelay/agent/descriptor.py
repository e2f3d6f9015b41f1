"""Stable agent descriptors used to tag sessions and traces."""

from __future__ import annotations

import hashlib
import json
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from agentrelay.profiles.base import AgentDefinition


class AgentDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "agent"
    version: str
    prompt_hash: str
    toolset_hash: str
    generated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    metadata: Dict[str, Any] = Field(default_factory=dict)


def hash_text(text: str) -> str:
    normalized = text.replace("\r\n", "\n")
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def hash_toolset(tools: list[str], metadata: Dict[str, Any]) -> str:
    payload = json.dumps({"tools": sorted(tools), "metadata": metadata}, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_descriptor(definition: AgentDefinition) -> AgentDescriptor:
    handoffs = [
        {
            "target": h.target_agent_name,
            "trigger": h.trigger.value,
            "include_tool_results": h.include_tool_results,
        }
        for h in definition.handoffs
    ]
    toolset_metadata = {"handoffs": handoffs, "max_iterations": definition.max_iterations}
    return AgentDescriptor(
        name=definition.name,
        version=definition.version,
        prompt_hash=hash_text(definition.instructions),
        toolset_hash=hash_toolset(definition.tools, toolset_metadata),
        metadata={"model": str(definition.model) if definition.model else None, "handoffs": handoffs},
    )


class AgentDescriptorRegistry:
    """Caches one descriptor per agent name.

    Registering a different definition under a known name logs a warning and
    replaces the cached descriptor.
    """

    def __init__(self):
        self._definitions: Dict[str, AgentDefinition] = {}
        self._cache: Dict[str, AgentDescriptor] = {}
        self._lock = threading.RLock()

    def register(self, definition: AgentDefinition) -> None:
        with self._lock:
            existing = self._definitions.get(definition.name)
            if existing is not None and existing is not definition:
                logger.warning(f"Agent descriptor for '{definition.name}' is being overwritten")
            self._definitions[definition.name] = definition
            self._cache.pop(definition.name, None)

    def get(self, name: str) -> Optional[AgentDescriptor]:
        with self._lock:
            if name in self._cache:
                return self._cache[name]
            definition = self._definitions.get(name)
            if definition is None:
                return None
            descriptor = build_descriptor(definition)
            self._cache[name] = descriptor
            return descriptor

    def describe(self, definition: AgentDefinition) -> AgentDescriptor:
        """Descriptor for ``definition``, registering it on first sight."""
        with self._lock:
            if self._definitions.get(definition.name) is not definition:
                self.register(definition)
            return self.get(definition.name)
