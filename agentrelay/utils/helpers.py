"""
Miscellaneous helper utilities.
"""

import datetime
import json
from typing import Any

from pydantic import BaseModel


def get_timestamp() -> str:
    """Get timestamp for naming run artifacts."""
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def serialize_content(value: Any) -> str:
    """Convert any tool or model value to text the LLM can read.

    Strings pass through, pydantic models and JSON-compatible values are
    dumped as JSON, everything else falls back to ``str``.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json(indent=2)
    if value is None:
        return ""
    try:
        return json.dumps(value, indent=2, default=str)
    except (TypeError, ValueError):
        return str(value)


def preview_text(text: Any, limit: int = 200) -> str:
    """Single-line preview of ``text`` for log messages."""
    flat = " ".join(serialize_content(text).split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 3] + "..."
