"""Application wiring: build every collaborator from a ``RelayConfig``."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from uuid import uuid4

from loguru import logger
from rich.console import Console

from agentrelay.agent.agent_tool import register_agent_tools
from agentrelay.agent.orchestrator import Orchestrator
from agentrelay.agent.runner import AgentRunner
from agentrelay.agent.tracker import AgentsTracer, Tracer
from agentrelay.context.file_store import FileStore
from agentrelay.context.run_context import RunContext
from agentrelay.llm.client import LLMClient
from agentrelay.llm.llm_setup import LLMConfig
from agentrelay.mcp.manager import MCPManager, MCPManagerSession, RetryPolicy
from agentrelay.mcp.tools import register_mcp_tools
from agentrelay.models.session import RunResult
from agentrelay.profiles import AgentCatalog, load_builtin_profiles
from agentrelay.tools.base import Tool
from agentrelay.tools.file_tools import register_file_tools
from agentrelay.tools.registry import ToolRegistry
from agentrelay.tools.surface import ToolSurfaceProvider
from agentrelay.utils.config import RelayConfig, resolve_config
from agentrelay.utils.logging import configure_logging
from agentrelay.utils.printer import SessionPrinter


class RelayApp:
    """One configured agentrelay instance: registry, catalog, runner and orchestrator.

    Use as an async context manager so MCP servers are connected on entry and
    closed on exit:

        async with RelayApp("configs/default.yaml") as app:
            result = await app.ask("Summarize the latest release notes")

    Browser or other environment tools are external; register them with
    ``register_tool`` before the first run.
    """

    def __init__(
        self,
        config: Union[None, str, Path, Mapping[str, Any], RelayConfig] = None,
        *,
        llm: Optional[LLMClient] = None,
        tracer: Optional[Tracer] = None,
        catalog: Optional[AgentCatalog] = None,
        console: Optional[Console] = None,
        setup_logging: bool = True,
    ):
        self.config = resolve_config(config)
        if setup_logging:
            configure_logging(self.config.logging.level, self.config.logging.file)

        self.console = console or Console()
        self.printer = SessionPrinter(self.console)

        llm_config = LLMConfig(self.config.llm_settings())
        self.tiers = llm_config.tiers
        self.llm = llm or llm_config.create_client()

        if tracer is None and self.config.tracing.enabled:
            tracer = AgentsTracer(self.config.tracing.workflow_name)

        self.registry = ToolRegistry()
        self.file_store = FileStore()
        register_file_tools(self.registry, self.file_store)

        self.catalog = self._apply_overrides(catalog or load_builtin_profiles())

        self._mcp_tool_names: List[str] = []
        self.surface = ToolSurfaceProvider(
            self.registry,
            mcp_tool_names=lambda: list(self._mcp_tool_names),
            mode=self.config.mcp.tool_mode,
            llm=self.llm,
            tiers=self.tiers,
            max_tools_per_turn=self.config.mcp.max_tools_per_turn,
            max_mcp_per_turn=self.config.mcp.max_mcp_per_turn,
            enabled=self.config.mcp.enabled,
            timeout=self.config.runner.llm_timeout,
        )

        self.runner = AgentRunner(
            llm=self.llm,
            registry=self.registry,
            catalog=self.catalog,
            settings=self.config.runner,
            tracer=tracer,
            tiers=self.tiers,
            surface=self.surface,
        )
        register_agent_tools(self.registry, self.runner, list(self.catalog))

        self.orchestrator = Orchestrator(
            self.runner,
            self.catalog,
            default_agent=self.config.default_agent,
            routes=self.config.routes,
        )

        self._mcp_session: Optional[MCPManagerSession] = None
        # File tools of every turn share this workspace.
        self.conversation_id = uuid4().hex

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _apply_overrides(self, catalog: AgentCatalog) -> AgentCatalog:
        for name, override in self.config.agents.items():
            definition = catalog.get(name)
            if definition is None:
                logger.warning(f"Override for unknown agent '{name}' ignored")
                continue
            changes = override.model_dump(exclude_none=True)
            if changes:
                catalog.register(definition.with_overrides(**changes))
        return catalog

    def register_tool(self, tool: Union[Tool, Callable[[], Tool]], name: Optional[str] = None) -> None:
        """Register an environment tool (instance or zero-argument factory)."""
        if isinstance(tool, Tool):
            self.registry.register_instance(tool, name=name)
        else:
            if name is None:
                raise ValueError("A name is required when registering a tool factory")
            self.registry.register(name, tool)

    def context(self, **overrides: Any) -> RunContext:
        """A fresh ``RunContext`` carrying the configured provider and models."""
        values: Dict[str, Any] = {
            "provider": self.config.provider,
            "model": self.tiers.default,
            "main_model": self.tiers.main,
            "mini_model": self.tiers.mini,
            "nano_model": self.tiers.nano,
        }
        values.update(overrides)
        return RunContext(**values)

    # ------------------------------------------------------------------
    # MCP lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "RelayApp":
        if self.config.mcp.enabled:
            await self.connect_mcp()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect_mcp(self) -> List[str]:
        """Connect configured MCP servers and register their tools.

        A second call while connected returns the names already registered.
        """
        if self._mcp_session is not None:
            return list(self._mcp_tool_names)
        settings = self.config.mcp
        manager = MCPManager.from_config(
            settings.server_config(),
            retry=RetryPolicy(
                max_retries=settings.max_connection_retries,
                base_delay=settings.retry_delay_ms / 1000,
            ),
        )
        self._mcp_session = manager.session()
        await self._mcp_session.__aenter__()

        results = await self._mcp_session.connect_all()
        failed = [name for name, ok in results.items() if not ok]
        if failed:
            logger.warning(f"MCP servers unavailable: {', '.join(failed)}")

        tools = await self._mcp_session.list_tools()
        names = register_mcp_tools(
            self.registry,
            self._mcp_session.connected_servers(),
            tools,
            allowlist=settings.tool_allowlist,
        )
        self._mcp_tool_names = names
        self._mcp_session.registered_tools = list(names)
        return names

    async def close(self) -> None:
        if self._mcp_session is None:
            return
        for name in self._mcp_tool_names:
            self.registry.unregister(name)
        self._mcp_tool_names = []
        session, self._mcp_session = self._mcp_session, None
        await session.__aexit__(None, None, None)

    def mcp_status(self) -> Optional[Dict[str, Any]]:
        return self._mcp_session.status() if self._mcp_session is not None else None

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def ask(
        self,
        query: str,
        agent: Optional[str] = None,
        agent_type: Optional[str] = None,
        context: Optional[RunContext] = None,
    ) -> RunResult:
        """Run one conversation turn through the orchestrator."""
        return await self.orchestrator.handle_turn(
            query,
            agent_name=agent,
            agent_type=agent_type,
            context=context or self.context(session_id=self.conversation_id),
        )
