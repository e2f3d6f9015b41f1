"""
Agent definitions: the data model and the built-in agents.
"""

from agentrelay.profiles.base import (
    AgentCatalog,
    AgentDefinition,
    HandoffConfig,
    HandoffTrigger,
    UnknownAgentError,
    default_prepare_messages,
)


def load_builtin_profiles() -> AgentCatalog:
    """Collect every AgentDefinition instance defined in the profiles package.

    Returns:
        AgentCatalog keyed by each definition's ``name``.
    """
    import importlib
    import inspect
    import pkgutil

    catalog = AgentCatalog()
    for module_info in sorted(pkgutil.iter_modules(__path__), key=lambda m: m.name):
        if module_info.name == "base" or module_info.name.startswith("_"):
            continue
        module = importlib.import_module(f"{__name__}.{module_info.name}")
        for name, obj in inspect.getmembers(module):
            if isinstance(obj, AgentDefinition) and not name.startswith("_"):
                catalog.register(obj)
    return catalog


__all__ = [
    "AgentCatalog",
    "AgentDefinition",
    "HandoffConfig",
    "HandoffTrigger",
    "UnknownAgentError",
    "default_prepare_messages",
    "load_builtin_profiles",
]
