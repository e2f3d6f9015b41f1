"""Bidirectional mapping between original tool names and LLM-safe names.

Provider function-calling APIs accept a restricted alphabet for tool names,
while MCP tools are namespaced as ``mcp:<server>:<tool>``. The map keeps the
sanitized form stable for the lifetime of a registry so a name the model has
already seen keeps resolving to the same original.
"""

from __future__ import annotations

import re
import threading
from typing import Dict, Optional

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_tool_name(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with an underscore.

    Empty names become ``"tool"``. Names are never truncated.
    """
    if not name:
        return "tool"
    return _UNSAFE_CHARS.sub("_", name)


class ToolNameMap:
    """Thread-safe original <-> sanitized tool name map with collision suffixes."""

    def __init__(self) -> None:
        self._original_to_sanitized: Dict[str, str] = {}
        self._sanitized_to_original: Dict[str, str] = {}
        self._lock = threading.RLock()

    def get_sanitized(self, original: str) -> str:
        """Return the sanitized name for ``original``, allocating one if needed.

        When two originals sanitize to the same string the later one receives
        ``_2``, ``_3``, ... in the order they were first seen.
        """
        with self._lock:
            existing = self._original_to_sanitized.get(original)
            if existing is not None:
                return existing

            base = sanitize_tool_name(original)
            candidate = base
            suffix = 2
            while candidate in self._sanitized_to_original:
                candidate = f"{base}_{suffix}"
                suffix += 1

            self._original_to_sanitized[original] = candidate
            self._sanitized_to_original[candidate] = original
            return candidate

    def add_mapping(self, original: str) -> str:
        """Register ``original`` and return its sanitized name."""
        return self.get_sanitized(original)

    def resolve_original(self, sanitized: str) -> Optional[str]:
        """Map a sanitized name back to its original, or ``None`` if unknown."""
        with self._lock:
            return self._sanitized_to_original.get(sanitized)

    def clear(self) -> None:
        with self._lock:
            self._original_to_sanitized.clear()
            self._sanitized_to_original.clear()

    def __len__(self) -> int:
        return len(self._original_to_sanitized)
