"""
Utility helpers for agentrelay.

This package provides utilities for:
- Configuration management (config.py)
- Logging setup (logging.py)
- Rich terminal output (printer.py)
- JSON/output parsing (parsers.py)
- Miscellaneous helpers (helpers.py)
"""

# Configuration utilities
from agentrelay.utils.config import (
    AgentOverride,
    ConfigError,
    LoggingSettings,
    MCPSettings,
    RelayConfig,
    RunnerSettings,
    TracingSettings,
    get_api_key_from_env,
    load_config,
    load_mapping_from_path,
    resolve_config,
)

# Logging
from agentrelay.utils.logging import configure_logging

# Printer utilities
from agentrelay.utils.printer import SessionPrinter

# Parser utilities
from agentrelay.utils.parsers import (
    OutputParserError,
    find_json_in_string,
    parse_json_output,
    validate_output,
)

# Helper utilities
from agentrelay.utils.helpers import get_timestamp, preview_text, serialize_content

__all__ = [
    # Config
    "AgentOverride",
    "ConfigError",
    "LoggingSettings",
    "MCPSettings",
    "RelayConfig",
    "RunnerSettings",
    "TracingSettings",
    "get_api_key_from_env",
    "load_config",
    "load_mapping_from_path",
    "resolve_config",
    # Logging
    "configure_logging",
    # Printer
    "SessionPrinter",
    # Parsers
    "OutputParserError",
    "find_json_in_string",
    "parse_json_output",
    "validate_output",
    # Helpers
    "get_timestamp",
    "preview_text",
    "serialize_content",
]
