"""Data models for agent spawning."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from crowd.errors import ConfigError
from crowd.logger import logger

# Agent IDs end up in container, volume and branch names.
_AGENT_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def validate_agent_id(agent_id: str) -> str:
    if not _AGENT_ID_RE.match(agent_id):
        raise ConfigError(
            agent_id,
            f"Invalid agent id {agent_id!r}: use letters, digits, '_', '.' or '-'",
        )
    return agent_id


# --- Workspace modes ---


@dataclass(frozen=True)
class SharedWorkspace:
    """Host directory bind-mounted directly (legacy, shared across agents)."""

    path: str


@dataclass(frozen=True)
class IsolatedWorkspace:
    """Per-agent volume seeded from a git repository."""

    repository: str


WorkspaceMode = SharedWorkspace | IsolatedWorkspace


@dataclass
class SpawnRequest:
    agent_id: str
    task: str
    workspace: WorkspaceMode | None = None
    agent_type: str | None = None

    @classmethod
    def from_fields(
        cls,
        agent_id: str,
        task: str,
        *,
        workspace: str | None = None,
        repository: str | None = None,
        agent_type: str | None = None,
    ) -> SpawnRequest:
        """Build a request from the optional workspace/repository pair.

        ``repository`` takes precedence. Neither leaves ``workspace`` unset,
        which ``ContainerManager.spawn`` rejects.
        """
        mode: WorkspaceMode | None = None
        if repository:
            if workspace:
                logger.warning(
                    "Both workspace and repository given, using isolated workspace",
                    agent_id=agent_id,
                    workspace=workspace,
                )
            mode = IsolatedWorkspace(repository)
        elif workspace:
            mode = SharedWorkspace(workspace)
        return cls(agent_id=agent_id, task=task, workspace=mode, agent_type=agent_type)

    @property
    def repository(self) -> str | None:
        if isinstance(self.workspace, IsolatedWorkspace):
            return self.workspace.repository
        return None


@dataclass(frozen=True)
class BindSpec:
    source: str  # host path or volume name
    target: str  # path inside the container
    mode: Literal["ro", "rw"] = "rw"

    def __str__(self) -> str:
        return f"{self.source}:{self.target}:{self.mode}"


@dataclass
class ContainerSpec:
    """Everything needed to create one container."""

    image: str
    name: str | None = None
    entrypoint: str | None = None
    command: list[str] = field(default_factory=list)
    env: list[str] = field(default_factory=list)  # KEY=VALUE entries
    binds: list[BindSpec] = field(default_factory=list)
    working_dir: str | None = None
    extra_hosts: list[str] = field(default_factory=list)  # host:ip entries
    tty: bool = False
    open_stdin: bool = False
    attach_stdin: bool = False


@dataclass
class ServiceDescriptor:
    """An auxiliary MCP server the agent may call, handed over at session creation."""

    name: str
    type: Literal["http", "stdio"] = "http"
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SpawnContext:
    agent_id: str
    control_port: int


@dataclass(frozen=True)
class AgentResult:
    id: str
    task: str
    container_id: str
