"""Tool registry: factories, cached instances and name resolution."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from agentrelay.tools.base import Tool
from agentrelay.tools.names import ToolNameMap


class ToolRegistry:
    """Maps tool names to tool instances.

    Each name is registered with a factory that is instantiated exactly once;
    every later lookup of that name returns the same instance. Aliases (for
    example the namespaced ``mcp:<server>:<tool>`` form of an MCP tool) point
    at a canonical name and are matched like exact names.

    Registration is serialized with a lock; instances are shared, so tools
    must be safe to call from concurrent sessions.
    """

    def __init__(self, name_map: Optional[ToolNameMap] = None):
        self._factories: Dict[str, Callable[[], Tool]] = {}
        self._instances: Dict[str, Tool] = {}
        self._aliases: Dict[str, str] = {}
        self._lock = threading.RLock()
        self.name_map = name_map or ToolNameMap()

    def register(
        self,
        name: str,
        factory: Callable[[], Tool],
        aliases: Iterable[str] = (),
    ) -> Optional[Tool]:
        """Register ``factory`` under ``name`` and instantiate it.

        Overwriting an existing name logs a warning. If the factory raises,
        the failure is logged and nothing is registered.

        Returns:
            The new instance, or ``None`` when instantiation failed.
        """
        with self._lock:
            if name in self._factories:
                logger.warning(f"Tool '{name}' is already registered; overwriting")

            try:
                instance = factory()
            except Exception as exc:
                logger.error(f"Failed to instantiate tool '{name}': {exc}")
                self._factories.pop(name, None)
                self._instances.pop(name, None)
                return None

            self._factories[name] = factory
            self._instances[name] = instance
            self.name_map.add_mapping(name)
            for alias in aliases:
                if alias != name:
                    self._aliases[alias] = name
                    self.name_map.add_mapping(alias)
            logger.debug(f"Registered tool '{name}'")
            return instance

    def register_instance(self, tool: Tool, name: Optional[str] = None, aliases: Iterable[str] = ()) -> Optional[Tool]:
        """Register an already-built tool under ``name`` (default: ``tool.name``)."""
        return self.register(name or tool.name, lambda: tool, aliases=aliases)

    def unregister(self, name: str) -> None:
        with self._lock:
            self._factories.pop(name, None)
            self._instances.pop(name, None)
            for alias in [a for a, target in self._aliases.items() if target == name]:
                del self._aliases[alias]

    def get_registered_tool(self, name: str) -> Optional[Tool]:
        """Exact-name lookup; ``None`` when unknown."""
        with self._lock:
            return self._instances.get(name)

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._instances

    def names(self) -> List[str]:
        with self._lock:
            return list(self._instances)

    def canonical_name(self, requested: str, available: Optional[Iterable[str]] = None) -> Optional[str]:
        """Resolve ``requested`` to a registered canonical name, or ``None``.

        Resolution order:
            1. exact name or alias
            2. namespace strip (``prefix:server:tool`` -> ``tool``)
            3. sanitized name mapped back to its original, then 1 and 2 on it
            4. when ``available`` is given, an available name whose sanitized
               form equals ``requested``

        When ``available`` is given, a candidate is only accepted if its
        canonical name (or the alias it was reached through) is available.
        """
        allowed = set(available) if available is not None else None

        with self._lock:
            for candidate in self._candidates(requested, allowed):
                canonical = self._lookup(candidate)
                if canonical is None:
                    continue
                if allowed is None or canonical in allowed or candidate in allowed:
                    return canonical
        return None

    def resolve(self, requested: str, available: Optional[Iterable[str]] = None) -> Optional[Tool]:
        """Return the tool instance for ``requested``; never raises."""
        canonical = self.canonical_name(requested, available)
        if canonical is None:
            logger.debug(f"Tool '{requested}' could not be resolved")
            return None
        with self._lock:
            return self._instances.get(canonical)

    def _lookup(self, name: str) -> Optional[str]:
        if name in self._instances:
            return name
        target = self._aliases.get(name)
        if target is not None and target in self._instances:
            return target
        return None

    def _candidates(self, requested: str, allowed: Optional[set]) -> List[str]:
        candidates: List[str] = [requested]
        if ":" in requested:
            candidates.append(requested.rsplit(":", 1)[-1])

        original = self.name_map.resolve_original(requested)
        if original and original != requested:
            candidates.append(original)
            if ":" in original:
                candidates.append(original.rsplit(":", 1)[-1])

        if allowed:
            candidates.extend(
                name for name in sorted(allowed)
                if self.name_map.get_sanitized(name) == requested
            )
        return candidates

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)
