from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from agents.mcp import MCPServer, MCPServerSse, MCPServerStdio
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential, wait_random

MAX_CONNECTION_EVENTS = 50
RETRYABLE_CATEGORIES = frozenset({"network", "server_error", "connection"})


class MCPConfigurationError(ValueError):
    """Raised when an MCP server configuration is invalid."""


class MCPConnectionError(RuntimeError):
    """Raised when an MCP server cannot be connected."""

    def __init__(self, server: str, category: str, cause: BaseException):
        self.server = server
        self.category = category
        super().__init__(f"MCP server '{server}' failed to connect ({category}): {cause}")


def categorize_error(exc: BaseException) -> str:
    """Classify a connection failure as configuration, authentication, connection,
    network, server_error or unknown. Only connection, network and server_error are retried.
    """
    if isinstance(exc, (MCPConfigurationError, TypeError, KeyError)):
        return "configuration"
    message = str(exc).lower()
    if any(token in message for token in ("401", "403", "unauthorized", "forbidden", "authentication")):
        return "authentication"
    if isinstance(exc, TimeoutError) or any(token in message for token in ("timeout", "timed out", "network", "dns")):
        return "network"
    if any(token in message for token in ("500", "502", "503", "504", "server error")):
        return "server_error"
    if isinstance(exc, (ConnectionError, OSError)) or any(token in message for token in ("connection", "refused")):
        return "connection"
    return "unknown"


def _is_retryable(exc: BaseException) -> bool:
    return categorize_error(exc) in RETRYABLE_CATEGORIES


@dataclass(frozen=True)
class MCPServerSpec:
    """Lightweight specification describing how to build an MCP server."""

    type: str
    options: Dict[str, Any]

    def __post_init__(self) -> None:
        if not self.type:
            raise MCPConfigurationError("MCP server configuration requires a 'type'.")


@dataclass
class ConnectionEvent:
    server: str
    type: str
    timestamp: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for server connections (delays in seconds)."""

    max_retries: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    jitter: float = 0.5

    @property
    def max_delay(self) -> float:
        return max(self.base_delay * 10, 10.0)


class MCPRegistry:
    """Registry responsible for storing MCP server specifications."""

    def __init__(self, specs: Optional[Dict[str, MCPServerSpec]] = None) -> None:
        self._specs = specs or {}

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "MCPRegistry":
        """Create a registry from configuration mapping.

        Accepts two shapes:
        - {"servers": {"name": {"type": "stdio", "params": {...}}}}
        - {"mcpServers": {"name": {"command": "npx", "args": ["@pkg"]}}}
          (the latter is normalized to stdio with params, or sse when a url is given)
        """
        if config is None:
            return cls()

        servers_config = config.get("servers") or {}
        if not servers_config and isinstance(config.get("mcpServers"), Mapping):
            servers_config = {
                name: _normalize_client_entry(name, raw)
                for name, raw in config["mcpServers"].items()
            }
        if not isinstance(servers_config, Mapping):
            raise MCPConfigurationError("'servers' must be a mapping of server definitions.")

        specs: Dict[str, MCPServerSpec] = {}
        for name, server_cfg in servers_config.items():
            if not isinstance(server_cfg, Mapping):
                raise MCPConfigurationError(f"MCP server '{name}' configuration must be a mapping.")

            server_type = str(server_cfg.get("type") or server_cfg.get("transport") or "").strip().lower()
            if not server_type:
                raise MCPConfigurationError(f"MCP server '{name}' must define a 'type' or 'transport'.")

            options = {k: v for k, v in server_cfg.items() if k not in {"type", "transport", "enabled"}}
            if server_cfg.get("enabled", True) is False:
                logger.debug(f"MCP server '{name}' is disabled; skipping")
                continue
            options.setdefault("name", name)
            specs[name] = MCPServerSpec(type=server_type, options=options)

        return cls(specs)

    def register(self, name: str, spec: MCPServerSpec) -> None:
        """Register (or overwrite) a spec by name."""
        self._specs[name] = spec

    def get(self, name: str) -> MCPServerSpec:
        try:
            return self._specs[name]
        except KeyError as exc:
            raise MCPConfigurationError(
                f"MCP server '{name}' is not defined; add it to the configuration."
            ) from exc

    def as_dict(self) -> Dict[str, MCPServerSpec]:
        return dict(self._specs)

    def contains(self, name: str) -> bool:
        return name in self._specs


def _normalize_client_entry(name: str, raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise MCPConfigurationError(f"MCP server '{name}' configuration must be a mapping.")
    default_type = "sse" if "url" in raw else "stdio"
    server_type = str(raw.get("type") or raw.get("transport") or default_type).strip().lower()
    params: Dict[str, Any] = {k: raw[k] for k in ("command", "args", "env", "url", "headers") if k in raw}
    normalized: Dict[str, Any] = {"type": server_type}
    if params:
        normalized["params"] = params
    for k, v in raw.items():
        if k not in {"type", "transport", "command", "args", "env", "url", "headers"}:
            normalized[k] = v
    return normalized


SERVER_TYPE_MAP = {
    "stdio": MCPServerStdio,
    "sse": MCPServerSse,
}


@dataclass
class _ServerState:
    connected: bool = False
    tool_count: int = 0
    last_error: Optional[str] = None
    category: Optional[str] = None


class MCPManagerSession:
    """Async context manager that keeps MCP server connections alive.

    Servers are connected on demand with retry and backoff, and closed when
    the session exits.
    """

    def __init__(self, registry: MCPRegistry, retry: Optional[RetryPolicy] = None):
        self._registry = registry
        self._retry = retry or RetryPolicy()
        self._stack = AsyncExitStack()
        self._servers: Dict[str, MCPServer] = {}
        self._state: Dict[str, _ServerState] = {}
        self.events: Deque[ConnectionEvent] = deque(maxlen=MAX_CONNECTION_EVENTS)
        self.registered_tools: List[str] = []

    async def __aenter__(self) -> "MCPManagerSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._stack.aclose()
        for name in self._servers:
            self._record(name, "disconnected")
            self._state[name].connected = False
        self._servers.clear()

    def _record(self, server: str, event_type: str, error: Optional[BaseException] = None) -> None:
        category = categorize_error(error) if error is not None else None
        self.events.append(ConnectionEvent(
            server=server,
            type=event_type,
            error=str(error) if error is not None else None,
            category=category,
        ))

    def _build(self, name: str, overrides: Optional[Mapping[str, Any]]) -> MCPServer:
        spec = self._registry.get(name)
        options = dict(spec.options)
        if overrides:
            options.update(overrides)
        try:
            server_cls = SERVER_TYPE_MAP[spec.type]
        except KeyError as exc:
            raise MCPConfigurationError(
                f"Unsupported MCP server type '{spec.type}' for '{name}'. "
                f"Supported types: {', '.join(SERVER_TYPE_MAP)}."
            ) from exc
        return server_cls(**options)

    async def _connect_once(self, name: str, overrides: Optional[Mapping[str, Any]]) -> MCPServer:
        server = self._build(name, overrides)
        try:
            await server.connect()
        except BaseException:
            await self._cleanup_quietly(name, server)
            raise
        return server

    async def _cleanup_quietly(self, name: str, server: MCPServer) -> None:
        try:
            await server.cleanup()
        except Exception as exc:
            logger.debug(f"Cleanup of MCP server '{name}' after a failed connect raised: {exc}")

    async def get_server(self, name: str, overrides: Optional[Mapping[str, Any]] = None) -> MCPServer:
        """Return a connected MCP server instance by name, creating it on demand.

        Raises:
            MCPConfigurationError: unknown server or unsupported type.
            MCPConnectionError: every connection attempt failed.
        """
        if name in self._servers:
            return self._servers[name]

        state = self._state.setdefault(name, _ServerState())
        policy = self._retry

        def _before_sleep(retry_state) -> None:
            exc = retry_state.outcome.exception()
            self._record(name, "retry", exc)
            logger.warning(f"MCP server '{name}' connect attempt {retry_state.attempt_number} failed: {exc}")

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(policy.max_retries + 1),
                wait=wait_exponential(multiplier=policy.base_delay, exp_base=policy.multiplier, max=policy.max_delay)
                + wait_random(0, policy.jitter),
                retry=retry_if_exception(_is_retryable),
                before_sleep=_before_sleep,
                reraise=True,
            ):
                with attempt:
                    server = await self._connect_once(name, overrides)
        except MCPConfigurationError:
            raise
        except Exception as exc:
            category = categorize_error(exc)
            state.connected = False
            state.last_error = str(exc)
            state.category = category
            self._record(name, "failed", exc)
            logger.error(f"MCP server '{name}' unavailable ({category}): {exc}")
            raise MCPConnectionError(name, category, exc) from exc

        self._stack.push_async_callback(self._cleanup_quietly, name, server)
        self._servers[name] = server
        state.connected = True
        state.last_error = None
        state.category = None
        self._record(name, "connected")
        logger.info(f"Connected MCP server '{name}'")
        return server

    async def connect_all(self) -> Dict[str, bool]:
        """Connect every configured server; failures are recorded, not raised."""
        results: Dict[str, bool] = {}
        for name in self._registry.as_dict():
            try:
                await self.get_server(name)
                results[name] = True
            except (MCPConnectionError, MCPConfigurationError) as exc:
                logger.warning(str(exc))
                results[name] = False
        return results

    async def reconnect(self, name: str) -> MCPServer:
        """Drop a server's connection and connect it again."""
        server = self._servers.pop(name, None)
        if server is not None:
            await self._cleanup_quietly(name, server)
            self._record(name, "disconnected")
        return await self.get_server(name)

    async def list_tools(self) -> Dict[str, List[Any]]:
        """MCP tool definitions per connected server, in configuration order."""
        tools: Dict[str, List[Any]] = {}
        for name in self._registry.as_dict():
            server = self._servers.get(name)
            if server is None:
                continue
            try:
                listed = list(await server.list_tools())
            except Exception as exc:
                logger.warning(f"Listing tools of MCP server '{name}' failed: {exc}")
                self._state[name].last_error = str(exc)
                self._state[name].category = categorize_error(exc)
                continue
            self._state[name].tool_count = len(listed)
            tools[name] = listed
        return tools

    def connected_servers(self) -> Dict[str, MCPServer]:
        return dict(self._servers)

    def status(self) -> Dict[str, Any]:
        servers = []
        for name, spec in self._registry.as_dict().items():
            state = self._state.get(name, _ServerState())
            servers.append({
                "name": name,
                "type": spec.type,
                "connected": state.connected,
                "toolCount": state.tool_count,
                "lastError": state.last_error,
                "errorCategory": state.category,
            })
        return {
            "servers": servers,
            "registeredToolNames": list(self.registered_tools),
            "events": [e.__dict__ for e in list(self.events)[-10:]],
        }


class MCPManager:
    """Entry point that provides MCP manager sessions."""

    def __init__(self, registry: MCPRegistry, retry: Optional[RetryPolicy] = None):
        self._registry = registry
        self._retry = retry or RetryPolicy()

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]], retry: Optional[RetryPolicy] = None) -> "MCPManager":
        registry = MCPRegistry.from_config(config)
        return cls(registry, retry=retry)

    def ensure_server(self, name: str, spec: MCPServerSpec) -> None:
        """Add a default server if one isn't already configured."""
        if not self._registry.contains(name):
            self._registry.register(name, spec)

    def session(self) -> MCPManagerSession:
        """Create a new MCPManagerSession for an application run."""
        return MCPManagerSession(self._registry, retry=self._retry)

    def list_servers(self) -> Dict[str, MCPServerSpec]:
        return self._registry.as_dict()
