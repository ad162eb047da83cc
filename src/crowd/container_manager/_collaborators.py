"""Capabilities the orchestrator needs but doesn't own.

Passed to :class:`ContainerManager` at construction so tests (and other
hosts) can substitute their own.  Defaults for the first two live in
:mod:`crowd.agent_config`; the session establisher is the control-protocol
server and has no default.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from crowd.types import ServiceDescriptor, SpawnContext


@runtime_checkable
class EnvLoader(Protocol):
    def load_env_vars(self, path: str) -> list[str]:
        """Return ``KEY=VALUE`` entries for a workspace path ("" for isolated workspaces)."""
        ...


@runtime_checkable
class ServiceDescriptorGenerator(Protocol):
    async def generate(
        self,
        agent_type: str | None,
        workspace_path: str,
        context: SpawnContext,
    ) -> list[ServiceDescriptor]:
        """Resolve the MCP servers for an agent. Must include ``messaging``."""
        ...


@runtime_checkable
class SessionEstablisher(Protocol):
    async def create_session(
        self,
        agent_id: str,
        container_id: str,
        descriptors: list[ServiceDescriptor],
    ) -> None:
        """Attach to the started container and negotiate the control session."""
        ...
