"""Main entry point — spawns an agent container and hands it to the control session.

Sequence for one spawn (no internal parallelism, no retries):

    validate → [isolated: ensure volume → bootstrap workspace]
             → compose env, services, binds → create + start container
             → establish control session (failure force-removes the container)

Only the session step rolls back.  A failed bootstrap leaves an empty but
mounted volume, which is still useful for inspecting the agent.
"""

from __future__ import annotations

from pathlib import Path

from crowd.agent_config.descriptors import MESSAGING_SERVER, messaging_descriptor
from crowd.config import Settings, get_settings
from crowd.container_manager._collaborators import (
    EnvLoader,
    ServiceDescriptorGenerator,
    SessionEstablisher,
)
from crowd.container_manager._credentials import build_git_binds
from crowd.container_manager._volumes import cleanup_agent_volume, ensure_volume
from crowd.container_manager._workspace import setup_workspace
from crowd.errors import ConfigError, ContainerCreateError, SessionEstablishError
from crowd.logger import logger
from crowd.runtime import ContainerRuntime
from crowd.types import (
    AgentResult,
    BindSpec,
    ContainerSpec,
    IsolatedWorkspace,
    ServiceDescriptor,
    SharedWorkspace,
    SpawnContext,
    SpawnRequest,
    validate_agent_id,
)

DEFAULT_AGENT_TYPE = "default"

# Docker Desktop resolves this name itself; on Linux it needs a host mapping.
_DOCKER_HOST_ALIAS = "host.docker.internal"


def container_name(agent_id: str) -> str:
    return f"agent-{agent_id}"


class ContainerManager:
    """Spawns agent containers and tears down their workspaces."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        *,
        env_loader: EnvLoader,
        service_generator: ServiceDescriptorGenerator,
        session_establisher: SessionEstablisher | None = None,
        settings: Settings | None = None,
        home_dir: Path | None = None,
    ) -> None:
        s = settings or get_settings()
        self.runtime = runtime
        self.env_loader = env_loader
        self.service_generator = service_generator
        self.session_establisher = session_establisher
        self.image = s.container.image
        self.workspace_path = s.container.workspace_path
        self.control_port = s.control.port
        self.control_host = s.control.container_host
        self.control_url = s.control.url
        self.setup_timeout = s.workspace.setup_timeout
        self.home_dir = home_dir if home_dir is not None else s.home_dir

    # ------------------------------------------------------------------
    # Spawn
    # ------------------------------------------------------------------

    async def spawn(self, request: SpawnRequest) -> AgentResult:
        agent_id = request.agent_id
        if request.workspace is None:
            raise ConfigError(agent_id, "Either workspace or repository must be specified")
        if isinstance(request.workspace, SharedWorkspace) and not request.workspace.path:
            raise ConfigError(agent_id, "Shared workspace path must not be empty")
        validate_agent_id(agent_id)

        if isinstance(request.workspace, IsolatedWorkspace):
            workspace_bind = await self._prepare_isolated_workspace(
                agent_id, request.workspace.repository
            )
            # The volume isn't readable from the host
            host_workspace = ""
        else:
            # A relative source would be read by docker as a named volume
            host_workspace = str(Path(request.workspace.path).resolve())
            logger.info("Using shared workspace", agent_id=agent_id, workspace=host_workspace)
            workspace_bind = BindSpec(host_workspace, self.workspace_path, "rw")

        env = self._build_env(request, host_workspace)
        descriptors = await self._resolve_services(request, host_workspace)
        binds = [workspace_bind, *build_git_binds(self.home_dir)]

        container_id = await self._start_agent_container(request, env, binds)
        await self._establish_session(agent_id, container_id, descriptors)

        return AgentResult(id=agent_id, task=request.task, container_id=container_id)

    async def _prepare_isolated_workspace(self, agent_id: str, repository: str) -> BindSpec:
        logger.info("Creating isolated workspace", agent_id=agent_id, repository=repository)
        # VolumeError propagates: nothing has been created yet
        volume = await ensure_volume(self.runtime, agent_id)
        try:
            await setup_workspace(
                self.runtime,
                agent_id,
                repository,
                volume,
                image=self.image,
                home_dir=self.home_dir,
                timeout=self.setup_timeout,
                workspace_path=self.workspace_path,
            )
            logger.info("Isolated workspace ready", agent_id=agent_id, volume=volume)
        except Exception as exc:
            logger.error(
                "Git workspace setup failed, falling back to empty isolated workspace",
                agent_id=agent_id,
                volume=volume,
                err=str(exc),
            )
        return BindSpec(volume, self.workspace_path, "rw")

    def _build_env(self, request: SpawnRequest, host_workspace: str) -> list[str]:
        env = [
            f"AGENT_ID={request.agent_id}",
            f"TASK={request.task}",
            f"AGENT_MCP_URL={self.control_url}",
            f"AGENT_TYPE={request.agent_type or DEFAULT_AGENT_TYPE}",
        ]
        if request.repository:
            env.append(f"REPOSITORY={request.repository}")
        env.extend(self.env_loader.load_env_vars(host_workspace))
        return env

    async def _resolve_services(
        self, request: SpawnRequest, host_workspace: str
    ) -> list[ServiceDescriptor]:
        descriptors = await self.service_generator.generate(
            request.agent_type,
            host_workspace,
            SpawnContext(agent_id=request.agent_id, control_port=self.control_port),
        )
        if not any(d.name == MESSAGING_SERVER for d in descriptors):
            logger.debug("Adding missing messaging server", agent_id=request.agent_id)
            messaging = messaging_descriptor(self.control_host, self.control_port)
            descriptors = [messaging, *descriptors]
        logger.info(
            "Generated MCP servers",
            agent_id=request.agent_id,
            count=len(descriptors),
            servers=[d.name for d in descriptors],
        )
        return descriptors

    async def _start_agent_container(
        self, request: SpawnRequest, env: list[str], binds: list[BindSpec]
    ) -> str:
        extra_hosts = []
        if self.control_host == _DOCKER_HOST_ALIAS:
            extra_hosts.append(f"{_DOCKER_HOST_ALIAS}:host-gateway")

        spec = ContainerSpec(
            image=self.image,
            name=container_name(request.agent_id),
            env=env,
            binds=binds,
            extra_hosts=extra_hosts,
            # The in-container agent speaks the control protocol over stdin
            tty=True,
            open_stdin=True,
            attach_stdin=True,
        )
        try:
            container_id = await self.runtime.create_container(spec)
        except Exception as exc:
            raise ContainerCreateError(request.agent_id, "create", exc) from exc
        try:
            await self.runtime.start_container(container_id)
        except Exception as exc:
            raise ContainerCreateError(request.agent_id, "start", exc) from exc

        logger.info(
            "Started agent container",
            agent_id=request.agent_id,
            container=spec.name,
            container_id=container_id[:12],
        )
        return container_id

    async def _establish_session(
        self, agent_id: str, container_id: str, descriptors: list[ServiceDescriptor]
    ) -> None:
        if self.session_establisher is None:
            # The started container is left running; callers own its removal.
            raise SessionEstablishError(
                agent_id, "no session establisher configured - cannot create control session"
            )

        try:
            await self.session_establisher.create_session(agent_id, container_id, descriptors)
        except Exception as exc:
            logger.error("Failed to create control session", agent_id=agent_id, err=str(exc))
            try:
                await self.runtime.remove_container(container_id, force=True)
                logger.info("Cleaned up container for failed agent", agent_id=agent_id)
            except Exception as cleanup_exc:
                logger.error(
                    "Failed to clean up container",
                    agent_id=agent_id,
                    container_id=container_id[:12],
                    err=str(cleanup_exc),
                )
            raise SessionEstablishError(agent_id, exc) from exc

        logger.info("Control session established", agent_id=agent_id)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup_agent(self, agent_id: str) -> None:
        """Remove the agent's workspace volume. Never raises."""
        try:
            await cleanup_agent_volume(self.runtime, agent_id)
        except Exception as exc:
            logger.error("Error during agent cleanup", agent_id=agent_id, err=str(exc))
