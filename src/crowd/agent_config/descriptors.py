"""Service descriptor generation — the MCP servers handed to each agent session."""

from __future__ import annotations

from crowd.agent_config.definitions import AgentDefinitionLoader, McpServerDefinition
from crowd.logger import logger
from crowd.types import ServiceDescriptor, SpawnContext

MESSAGING_SERVER = "messaging"


def messaging_descriptor(container_host: str, port: int) -> ServiceDescriptor:
    """The messaging server every agent gets, regardless of type."""
    return ServiceDescriptor(
        name=MESSAGING_SERVER,
        type="http",
        url=f"http://{container_host}:{port}/mcp",
    )


def _to_descriptor(name: str, server: McpServerDefinition) -> ServiceDescriptor:
    return ServiceDescriptor(
        name=name,
        type=server.type,
        url=server.url,
        headers=dict(server.headers),
        command=server.command,
        args=list(server.args),
        env=dict(server.env),
    )


class ServiceConfigGenerator:
    """Messaging first, then the servers declared by the agent's definition."""

    def __init__(self, loader: AgentDefinitionLoader, *, container_host: str) -> None:
        self.loader = loader
        self.container_host = container_host

    async def generate(
        self,
        agent_type: str | None,
        workspace_path: str,
        context: SpawnContext,
    ) -> list[ServiceDescriptor]:
        descriptors = [messaging_descriptor(self.container_host, context.control_port)]
        if not agent_type:
            return descriptors

        definition = self.loader.load(agent_type, workspace_path)
        if definition is None:
            return descriptors

        for name, server in definition.mcp_servers.items():
            if name == MESSAGING_SERVER:
                logger.warning(
                    "Agent definition overrides reserved server name, skipping",
                    agent_type=agent_type,
                    server=name,
                )
                continue
            descriptors.append(_to_descriptor(name, server))
        return descriptors
