"""Default environment and service-descriptor providers for agent containers."""

from crowd.agent_config.definitions import (
    AgentDefinition,
    AgentDefinitionLoader,
    McpServerDefinition,
)
from crowd.agent_config.descriptors import ServiceConfigGenerator, messaging_descriptor
from crowd.agent_config.env_loader import DotenvEnvLoader

__all__ = [
    "AgentDefinition",
    "AgentDefinitionLoader",
    "DotenvEnvLoader",
    "McpServerDefinition",
    "ServiceConfigGenerator",
    "messaging_descriptor",
]
