"""Container manager — provisions workspaces and spawns agent containers.

This package is split into focused submodules:
  _docker         — docker CLI wrappers and the DockerRuntime implementation
  _credentials    — read-only git credential binds from the host home dir
  _volumes        — per-agent volume provisioning and best-effort removal
  _workspace      — setup container that clones/updates the repo into a volume
  _collaborators  — env loader, service generator and session establisher contracts
  _orchestrator   — ContainerManager (spawn / cleanup_agent)
"""

from crowd.container_manager._collaborators import (
    EnvLoader,
    ServiceDescriptorGenerator,
    SessionEstablisher,
)
from crowd.container_manager._credentials import build_git_binds
from crowd.container_manager._docker import DockerRuntime, run_docker
from crowd.container_manager._orchestrator import ContainerManager, container_name
from crowd.container_manager._volumes import (
    cleanup_agent_volume,
    ensure_volume,
    remove_agent_volume,
    volume_name,
)
from crowd.container_manager._workspace import agent_branch, setup_workspace

__all__ = [
    "ContainerManager",
    "DockerRuntime",
    "EnvLoader",
    "ServiceDescriptorGenerator",
    "SessionEstablisher",
    "agent_branch",
    "build_git_binds",
    "cleanup_agent_volume",
    "container_name",
    "ensure_volume",
    "remove_agent_volume",
    "run_docker",
    "setup_workspace",
    "volume_name",
]
