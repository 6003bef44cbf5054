"""
Component factory.

Centralises the construction of the orchestration engine's collaborators from
settings, so the HTTP app, the CLI and tests wire them up the same way.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from convollm.config.settings import Settings
from convollm.context.assembler import load_template
from convollm.context.store import StaticContextStore
from convollm.llm.backends import BACKENDS, BackendAdapter
from convollm.llm.orchestrator import CompletionOrchestrator
from convollm.tools.base import Tool
from convollm.tools.mcp_server import McpToolServer
from convollm.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class Components:
    """
    Factory for building engine components from settings.

    Example::

        factory = Components(settings)
        async with factory.create_tool_registry() as registry:
            orchestrator = factory.create_orchestrator(registry)
            completion = await orchestrator.complete(messages, context)
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def create_context_store(self) -> StaticContextStore:
        """Create the static context store from settings."""
        return StaticContextStore.from_settings(self.settings.context)

    def create_backend(self) -> BackendAdapter:
        """Create the backend adapter selected by ``llm.backend``."""
        backend_cls = BACKENDS[self.settings.llm.backend]
        logger.info(f"Using {backend_cls.name} backend (default model: {self.settings.llm.model})")
        return backend_cls(self.settings.llm)

    def load_system_template(self) -> str:
        """Load the configured system prompt template (or the bundled default)."""
        return load_template(self.settings.context.system_template_path)

    @asynccontextmanager
    async def create_tool_registry(self, extra_tools: list[Tool] | None = None) -> AsyncIterator[ToolRegistry]:
        """
        Build the tool registry, starting the MCP server if one is configured.

        The MCP subprocess lives until the context exits.
        """
        tools: list[Tool] = list(extra_tools or [])
        async with AsyncExitStack() as stack:
            command = self.settings.tools.mcp_server_command
            if command:
                server = await stack.enter_async_context(
                    McpToolServer(command, env=self.settings.tools.mcp_server_env)
                )
                tools.extend(await server.list_tools())

            registry = ToolRegistry(tools)
            logger.info(f"Tool registry ready with {len(registry)} tool(s): {registry.names}")
            yield registry

    def create_orchestrator(self, registry: ToolRegistry) -> CompletionOrchestrator:
        """Create the orchestrator from settings + an initialized tool registry."""
        return CompletionOrchestrator(
            backend=self.create_backend(),
            registry=registry,
            context_store=self.create_context_store(),
            system_template=self.load_system_template(),
        )
