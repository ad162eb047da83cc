"""Per-agent named volumes — idempotent provisioning and best-effort removal."""

from __future__ import annotations

from crowd.errors import CleanupError, VolumeError
from crowd.logger import logger
from crowd.runtime import ContainerRuntime


def volume_name(agent_id: str) -> str:
    """Deterministic volume name, reused across cleanup/recreate cycles."""
    return f"agent-{agent_id}-workspace"


async def ensure_volume(runtime: ContainerRuntime, agent_id: str) -> str:
    """Create the agent's workspace volume unless it already exists.

    Raises VolumeError (never retried) if the runtime can't list or create.
    """
    name = volume_name(agent_id)
    try:
        existing = await runtime.list_volumes()
        if name in existing:
            logger.info("Using existing Docker volume", volume=name, agent_id=agent_id)
        else:
            await runtime.create_volume(name)
            logger.info("Created Docker volume", volume=name, agent_id=agent_id)
    except Exception as exc:
        raise VolumeError(agent_id, exc) from exc
    return name


async def remove_agent_volume(runtime: ContainerRuntime, agent_id: str) -> None:
    """Remove the agent's volume, raising CleanupError on failure."""
    name = volume_name(agent_id)
    try:
        await runtime.remove_volume(name)
    except Exception as exc:
        raise CleanupError(agent_id, exc) from exc
    logger.info("Cleaned up Docker volume", volume=name, agent_id=agent_id)


async def cleanup_agent_volume(runtime: ContainerRuntime, agent_id: str) -> None:
    """Best-effort volume removal. Failures are logged, never raised.

    The volume may be absent (shared-workspace agent, earlier cleanup) or
    still in use by a container that hasn't been removed yet.
    """
    try:
        await remove_agent_volume(runtime, agent_id)
    except CleanupError as exc:
        logger.warning(
            "Could not clean up volume",
            volume=volume_name(agent_id),
            agent_id=agent_id,
            err=str(exc.__cause__ or exc),
        )
