"""Agent definitions — per-type YAML files describing extra MCP servers.

Example ``.crowd/agents/reviewer.yaml``::

    name: reviewer
    systemPrompt: You review pull requests.
    mcpServers:
      filesystem:
        type: stdio
        command: npx
        args: ["@modelcontextprotocol/server-filesystem"]
      search:
        type: http
        url: https://search.example.com/mcp
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from crowd.logger import logger

AGENTS_SUBDIR = Path(".crowd") / "agents"

_AGENT_TYPE_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class McpServerDefinition(BaseModel):
    model_config = {"extra": "forbid"}

    type: Literal["stdio", "http"]

    # stdio fields
    command: str | None = None
    args: list[str] = []
    env: dict[str, str] = {}

    # http fields
    url: str | None = None
    headers: dict[str, str] = {}

    @model_validator(mode="after")
    def _require_transport_fields(self) -> McpServerDefinition:
        if self.type == "stdio" and not self.command:
            raise ValueError("stdio MCP servers require 'command'")
        if self.type == "http" and not self.url:
            raise ValueError("http MCP servers require 'url'")
        return self


class AgentDefinition(BaseModel):
    model_config = {"populate_by_name": True}

    name: str
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    mcp_servers: dict[str, McpServerDefinition] = Field(default_factory=dict, alias="mcpServers")


class AgentDefinitionLoader:
    """Find and parse ``<agent_type>.yaml`` for a workspace.

    Looks under ``<workspace>/.crowd/agents/`` for shared workspaces.  An empty
    workspace path (isolated mode) falls back to *fallback_dir* if given.
    """

    def __init__(self, fallback_dir: Path | None = None) -> None:
        self.fallback_dir = fallback_dir

    def find(self, agent_type: str, workspace_path: str) -> Path | None:
        if not _AGENT_TYPE_RE.match(agent_type):
            logger.warning("Ignoring invalid agent type", agent_type=agent_type)
            return None
        search_dir = Path(workspace_path) / AGENTS_SUBDIR if workspace_path else self.fallback_dir
        if search_dir is None:
            return None
        for suffix in (".yaml", ".yml"):
            candidate = search_dir / f"{agent_type}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def load(self, agent_type: str, workspace_path: str) -> AgentDefinition | None:
        """Return the parsed definition, or None if missing or invalid (logged)."""
        path = self.find(agent_type, workspace_path)
        if path is None:
            logger.debug("No agent definition found", agent_type=agent_type)
            return None
        try:
            raw = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to read agent definition", path=str(path), err=str(exc))
            return None
        if not isinstance(raw, dict):
            logger.warning("Agent definition is not a mapping", path=str(path))
            return None
        raw.setdefault("name", agent_type)
        try:
            return AgentDefinition.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Invalid agent definition", path=str(path), err=str(exc))
            return None
