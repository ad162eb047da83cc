"""Dependency factory — wires a ContainerManager from Settings.

The control-protocol server owns session creation, so it passes itself (or
anything with ``create_session``) in as the session establisher.
"""

from __future__ import annotations

from pathlib import Path

from crowd.agent_config import AgentDefinitionLoader, DotenvEnvLoader, ServiceConfigGenerator
from crowd.config import Settings, get_settings
from crowd.container_manager import (
    ContainerManager,
    DockerRuntime,
    SessionEstablisher,
)
from crowd.runtime import ContainerRuntime


def _resolve(s: Settings, raw: str) -> Path:
    p = Path(raw).expanduser()
    return p if p.is_absolute() else s.project_root / p


def make_container_manager(
    session_establisher: SessionEstablisher | None = None,
    *,
    runtime: ContainerRuntime | None = None,
    settings: Settings | None = None,
) -> ContainerManager:
    s = settings or get_settings()
    env_loader = DotenvEnvLoader(_resolve(s, f) for f in s.container.env_files)
    generator = ServiceConfigGenerator(
        AgentDefinitionLoader(fallback_dir=s.definitions_dir),
        container_host=s.control.container_host,
    )
    return ContainerManager(
        runtime or DockerRuntime(),
        env_loader=env_loader,
        service_generator=generator,
        session_establisher=session_establisher,
        settings=s,
    )
