"""Seed an isolated workspace volume from a git repository.

A throwaway container built from the agent image mounts the volume and runs a
fixed shell program: pull if a clone is already there, clone otherwise, then
check out the agent's own branch.  The repository URL and branch name are
handed to ``sh`` as positional arguments and never spliced into the script.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from crowd.container_manager._credentials import build_git_binds
from crowd.errors import WorkspaceBootstrapError
from crowd.logger import logger
from crowd.runtime import ContainerRuntime
from crowd.types import BindSpec, ContainerSpec

# $1 = repository URL, $2 = branch name. A stale clone that can't pull is kept.
SETUP_SCRIPT = """\
set -e
if [ -d .git ]; then
  echo "Pulling latest changes from repository..."
  git pull origin main || git pull origin master || true
else
  echo "Cloning repository: $1"
  git clone -- "$1" .
fi
git checkout -b "$2" 2>/dev/null || git checkout "$2"
echo "Working on branch: $2"
"""

_OUTPUT_TAIL = 2000


def agent_branch(agent_id: str) -> str:
    return f"agent-{agent_id}"


def build_setup_spec(
    agent_id: str,
    repository: str,
    volume: str,
    *,
    image: str,
    home_dir: Path,
    workspace_path: str = "/workspace",
) -> ContainerSpec:
    return ContainerSpec(
        image=image,
        entrypoint="/bin/sh",
        command=["-c", SETUP_SCRIPT, "setup-workspace", repository, agent_branch(agent_id)],
        binds=[BindSpec(volume, workspace_path, "rw"), *build_git_binds(home_dir)],
        working_dir=workspace_path,
    )


async def _run_to_completion(runtime: ContainerRuntime, container_id: str) -> tuple[str, int]:
    await runtime.start_container(container_id)
    output = await runtime.collect_logs(container_id)
    exit_code = await runtime.wait_container(container_id)
    return output, exit_code


async def setup_workspace(
    runtime: ContainerRuntime,
    agent_id: str,
    repository: str,
    volume: str,
    *,
    image: str,
    home_dir: Path,
    timeout: float,
    workspace_path: str = "/workspace",
) -> None:
    """Clone/update *repository* into *volume* and check out the agent branch.

    Blocks until the setup container's output stream ends or *timeout*
    seconds pass.  The setup container is always removed.  Any failure along the way is
    raised as WorkspaceBootstrapError.
    """
    spec = build_setup_spec(
        agent_id,
        repository,
        volume,
        image=image,
        home_dir=home_dir,
        workspace_path=workspace_path,
    )
    try:
        container_id = await runtime.create_container(spec)
    except Exception as exc:
        raise WorkspaceBootstrapError(agent_id, exc) from exc

    try:
        output, exit_code = await asyncio.wait_for(
            _run_to_completion(runtime, container_id), timeout=timeout
        )
    except TimeoutError as exc:
        await _force_remove(runtime, container_id, agent_id)
        raise WorkspaceBootstrapError(
            agent_id, f"setup did not finish within {timeout:g}s"
        ) from exc
    except Exception as exc:
        await _force_remove(runtime, container_id, agent_id)
        raise WorkspaceBootstrapError(agent_id, exc) from exc

    try:
        await runtime.remove_container(container_id)
    except Exception as exc:
        raise WorkspaceBootstrapError(agent_id, exc) from exc

    logger.debug("Setup container output", agent_id=agent_id, output=output[-_OUTPUT_TAIL:])
    if exit_code != 0:
        raise WorkspaceBootstrapError(
            agent_id,
            f"setup exited with code {exit_code}: {output.strip()[-_OUTPUT_TAIL:]}",
        )
    logger.info(
        "Git workspace setup completed",
        agent_id=agent_id,
        volume=volume,
        branch=agent_branch(agent_id),
    )


async def _force_remove(runtime: ContainerRuntime, container_id: str, agent_id: str) -> None:
    try:
        await runtime.remove_container(container_id, force=True)
    except Exception as exc:
        logger.warning(
            "Failed to remove setup container",
            agent_id=agent_id,
            container_id=container_id,
            err=str(exc),
        )
